"""Per-source bearer sessions for token-gated mobile APIs.

Sessions are created on first use by posting a synthetic device id to the
source's bootstrap endpoint, refreshed once on an auth failure, and never
shared across sources. Each source has its own lock so a slow bootstrap on
one upstream never blocks another.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

import config
from errors import AuthError, UpstreamStatusError
from models import SourceSession
from services.fetch_client import FetchClient, RawDocument, merge_headers
from utils.record import read_first

LOGGER = logging.getLogger(__name__)

AUTH_FAILURE_STATUSES = (401, 403)


@dataclass(frozen=True)
class SessionProfile:
    source_id: str
    bootstrap_url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    device_id_field: str = "android_id"
    device_id_length: int = 16
    token_paths: tuple = ("token", "data.token", "access_token")
    expires_in_paths: tuple = ("expires_in", "data.expires_in")


def new_device_id(length: int = 16) -> str:
    raw = ""
    while len(raw) < length:
        raw += uuid.uuid4().hex
    return raw[:length]


class SessionManager:
    def __init__(
        self,
        fetch_client: FetchClient,
        profiles: Optional[Iterable[SessionProfile]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._fetch = fetch_client
        self._clock = clock
        self._profiles: Dict[str, SessionProfile] = {}
        self._sessions: Dict[str, SourceSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        for profile in profiles or ():
            self.register(profile)

    def register(self, profile: SessionProfile) -> None:
        self._profiles[profile.source_id] = profile

    def _profile(self, source_id: str) -> SessionProfile:
        profile = self._profiles.get(source_id)
        if profile is None:
            raise AuthError(f"no session profile registered for '{source_id}'")
        return profile

    def _lock_for(self, source_id: str) -> asyncio.Lock:
        lock = self._locks.get(source_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[source_id] = lock
        return lock

    def _valid_session(self, source_id: str) -> Optional[SourceSession]:
        session = self._sessions.get(source_id)
        if session is None:
            return None
        if not session.is_valid(self._clock(), config.SESSION_EXPIRY_SKEW_SECONDS):
            self._sessions.pop(source_id, None)
            return None
        return session

    def current(self, source_id: str) -> Optional[SourceSession]:
        return self._valid_session(source_id)

    async def get_session(self, source_id: str) -> SourceSession:
        session = self._valid_session(source_id)
        if session is not None:
            return session
        async with self._lock_for(source_id):
            session = self._valid_session(source_id)
            if session is not None:
                return session
            return await self._bootstrap(self._profile(source_id))

    async def refresh(self, source_id: str, failed_token: str) -> SourceSession:
        """Replace the session whose ``failed_token`` was rejected.

        Callers that lost the race reuse the session a concurrent refresh
        already produced.
        """
        async with self._lock_for(source_id):
            session = self._valid_session(source_id)
            if session is not None and session.token != failed_token:
                return session
            self._sessions.pop(source_id, None)
            return await self._bootstrap(self._profile(source_id))

    def invalidate(self, source_id: str) -> None:
        self._sessions.pop(source_id, None)

    async def _bootstrap(self, profile: SessionProfile) -> SourceSession:
        device_id = new_device_id(profile.device_id_length)
        LOGGER.info("Bootstrapping session source=%s", profile.source_id)
        try:
            document = await self._fetch.fetch(
                profile.bootstrap_url,
                method="POST",
                headers=profile.headers,
                json_body={profile.device_id_field: device_id},
            )
        except UpstreamStatusError as exc:
            if exc.status in AUTH_FAILURE_STATUSES:
                raise AuthError(f"bootstrap rejected for '{profile.source_id}' (HTTP {exc.status})") from exc
            raise

        payload = document.json()
        token = read_first(payload, profile.token_paths, "")
        if not token:
            raise AuthError(f"bootstrap for '{profile.source_id}' returned no token")

        issued_at = self._clock()
        expires_at = None
        expires_in = read_first(payload, profile.expires_in_paths, None)
        try:
            if expires_in is not None:
                expires_at = issued_at + float(expires_in)
        except (TypeError, ValueError):
            LOGGER.warning("Ignoring non-numeric expires_in=%r source=%s", expires_in, profile.source_id)

        session = SourceSession(
            source_id=profile.source_id,
            device_id=device_id,
            token=str(token),
            issued_at=issued_at,
            expires_at=expires_at,
        )
        self._sessions[profile.source_id] = session
        return session

    @staticmethod
    def _auth_headers(profile: SessionProfile, session: SourceSession, headers: Optional[Mapping[str, str]]):
        return merge_headers(profile.headers, headers, {"authorization": f"Bearer {session.token}"})

    async def authorized_fetch(
        self,
        source_id: str,
        url: str,
        *,
        method: str = "GET",
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, Any]] = None,
        json_body: Any = None,
    ) -> RawDocument:
        """Fetch with the source's bearer token, re-bootstrapping once on 401/403."""
        profile = self._profile(source_id)
        session = await self.get_session(source_id)
        try:
            return await self._fetch.fetch(
                url,
                method=method,
                headers=self._auth_headers(profile, session, headers),
                params=params,
                json_body=json_body,
            )
        except UpstreamStatusError as exc:
            if exc.status not in AUTH_FAILURE_STATUSES:
                raise
            LOGGER.warning("Auth rejected source=%s status=%s; re-bootstrapping", source_id, exc.status)

        session = await self.refresh(source_id, session.token)
        try:
            return await self._fetch.fetch(
                url,
                method=method,
                headers=self._auth_headers(profile, session, headers),
                params=params,
                json_body=json_body,
            )
        except UpstreamStatusError as exc:
            if exc.status in AUTH_FAILURE_STATUSES:
                self.invalidate(source_id)
                raise AuthError(f"'{source_id}' rejected a fresh session (HTTP {exc.status})") from exc
            raise
