from .misc import (
    Listeners,
    as_seconds,
    extract_ref,
    format_hms,
    format_short,
    is_valid_email,
    now_iso,
    now_local,
    parse_server_time,
)

__all__ = [
    "Listeners",
    "as_seconds",
    "extract_ref",
    "format_hms",
    "format_short",
    "is_valid_email",
    "now_iso",
    "now_local",
    "parse_server_time",
]
