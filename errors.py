"""Error taxonomy shared by the fetch client, adapters and aggregator."""


class CatalogError(Exception):
    """Base class for every error raised by the catalog core."""


class NetworkError(CatalogError):
    """Connection failure or timeout talking to an upstream."""


class UpstreamStatusError(CatalogError):
    def __init__(self, status, url=""):
        self.status = int(status)
        self.url = url
        super().__init__(f"upstream returned HTTP {self.status} for {url}")


class ParseError(CatalogError):
    """Every extraction rule for a required field came up empty."""

    def __init__(self, field, detail=""):
        self.field = field
        message = f"could not extract required field '{field}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class AuthError(CatalogError):
    """Authentication still failing after one re-bootstrap and replay."""


class RenderError(CatalogError):
    """Browser rendering timed out or crashed."""


class UnsupportedOperationError(CatalogError):
    def __init__(self, source_id, operation):
        self.source_id = source_id
        self.operation = operation
        super().__init__(f"source '{source_id}' does not support '{operation}'")


class UnknownSourceError(CatalogError):
    def __init__(self, source_kind):
        self.source_kind = source_kind
        super().__init__(f"unknown source or kind '{source_kind}'")
