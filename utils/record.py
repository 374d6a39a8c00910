"""Helpers for reading fields out of loosely-shaped upstream payloads."""


def read_field(obj, key, default=None):
    """Read ``key`` from a mapping- or index-like object.

    Returns ``default`` when ``obj`` is ``None`` or the key is missing.
    """
    if obj is None:
        return default
    if hasattr(obj, "get"):
        return obj.get(key, default)
    try:
        return obj[key]
    except (KeyError, IndexError, TypeError):
        return default


def read_path(obj, path, default=None):
    """Follow a dotted ``path`` (``"data.video_data.video_list"``) through nested records."""
    current = obj
    for part in str(path).split("."):
        if current is None:
            return default
        key = int(part) if part.isdigit() and isinstance(current, (list, tuple)) else part
        current = read_field(current, key, None)
    return default if current is None else current


def read_first(obj, keys, default=None):
    """Value of the first key in ``keys`` that is present and non-empty."""
    for key in keys:
        value = read_path(obj, key, None)
        if value not in (None, "", [], {}):
            return value
    return default
