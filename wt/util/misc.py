import re
from datetime import datetime, timedelta

_EMAIL_RE = re.compile(r"^[\w\-.]+@([\w-]+\.)+[\w-]{2,}$")


# Simply returns the current local time as an ISO8601 string with timezone offset.
def now_iso():
    return datetime.now().astimezone().isoformat()


# Returns the current local time as an aware datetime. Everything that compares against server timestamps uses this,
# so naive and aware datetimes never get mixed.
def now_local():
    return datetime.now().astimezone()


# Parses a server timestamp (ISO8601, usually UTC with a trailing Z) into an aware local datetime. Naive values are
# assumed to already be local. Returns None for anything unparseable.
def parse_server_time(value):
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.astimezone()
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed.astimezone()


# Format a duration (timedelta or seconds) as HH:MM:SS. Negative values clamp to zero.
def format_hms(value):
    if isinstance(value, timedelta):
        value = value.total_seconds()
    seconds = max(0, int(value))
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


# Whole seconds from a JSON duration field. Servers send ints or floats like 120.0; anything else (including
# booleans, which are ints to Python) gives None.
def as_seconds(value):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


# Short human format used on cards and reports, e.g. "2h 30m", "45m", "< 1m".
def format_short(seconds):
    seconds = max(0, int(seconds))
    hours, minutes = seconds // 3600, (seconds % 3600) // 60
    if hours and minutes:
        return f"{hours}h {minutes}m"
    if hours:
        return f"{hours}h"
    if minutes:
        return f"{minutes}m"
    return "< 1m"


def is_valid_email(email):
    return bool(email) and _EMAIL_RE.match(email) is not None


# Server payloads reference related documents either as an embedded object ({"_id": ..., "name": ...}) or as a
# bare id string. Returns (id, name) with None/"" when missing.
def extract_ref(field):
    if isinstance(field, dict):
        ref_id = field.get("_id", field.get("id"))
        return (str(ref_id) if ref_id is not None else None), str(field.get("name") or "")
    if field is None:
        return None, ""
    return str(field), ""


# Minimal observer list shared by the stores and the socket service. Store listeners take no arguments and read
# whatever they need back off the store.
class Listeners:

    def __init__(self):
        self._listeners = []

    # Returns a callable that removes the listener again.
    def subscribe(self, callback):
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)
        return unsubscribe

    def notify(self, *args):
        for callback in list(self._listeners):
            callback(*args)
