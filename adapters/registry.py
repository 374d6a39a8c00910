# adapters/registry.py
"""Static source-id → adapter table and the content-kind aliases."""

from typing import Dict, Optional

from adapters.anichin import AnichinAdapter
from adapters.dramabox import DramaboxAdapter
from adapters.dramadash import SESSION_PROFILE as DRAMADASH_SESSION_PROFILE
from adapters.dramadash import DramadashAdapter
from adapters.komiku import KomikuAdapter
from adapters.lk21 import Lk21Adapter
from adapters.meionovel import MeionovelAdapter
from adapters.melolo import MeloloAdapter
from adapters.otakudesu import OtakudesuAdapter
from adapters.samehadaku import SamehadakuAdapter
from errors import UnknownSourceError
from services.fetch_client import FetchClient
from services.session_manager import SessionManager

ADAPTER_CLASSES = {
    adapter.SOURCE_ID: adapter
    for adapter in (
        OtakudesuAdapter,
        SamehadakuAdapter,
        AnichinAdapter,
        Lk21Adapter,
        KomikuAdapter,
        MeionovelAdapter,
        DramadashAdapter,
        MeloloAdapter,
        DramaboxAdapter,
    )
}

# Content kind → default source.
SOURCE_KINDS = {
    "anime": "otakudesu",
    "donghua": "anichin",
    "film": "lk21",
    "drama": "dramadash",
    "comic": "komiku",
    "novel": "meionovel",
}

SESSION_PROFILES = (DRAMADASH_SESSION_PROFILE,)


def resolve_source_id(source_kind: str) -> str:
    """Accept either a content kind alias or a concrete source id."""
    key = (source_kind or "").strip().lower()
    if key in ADAPTER_CLASSES:
        return key
    if key in SOURCE_KINDS:
        return SOURCE_KINDS[key]
    raise UnknownSourceError(source_kind)


def build_session_manager(fetch_client: FetchClient) -> SessionManager:
    return SessionManager(fetch_client, SESSION_PROFILES)


def build_adapters(fetch_client: FetchClient, session_manager: Optional[SessionManager] = None) -> Dict[str, object]:
    session_manager = session_manager or build_session_manager(fetch_client)
    return {
        source_id: adapter_class(fetch_client, session_manager)
        for source_id, adapter_class in ADAPTER_CLASSES.items()
    }
