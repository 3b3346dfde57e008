import json
import os
from wt.common.logger import log
from wt.util import now_iso
from wt.common.setup import PATHS


_SCHEMA_VERSION = 1

#region === Helpers and Paths ===

STATE_PATH = PATHS.current / "state.json"

DEFAULT_API_URL = "https://api.ssapp.site/api/v1"
DEFAULT_SOCKET_URL = "https://api.ssapp.site"

# Default values just for the settings section of the state dict.
_SETTINGS_DEFAULTS = {
    "api_url": DEFAULT_API_URL,
    "socket_url": DEFAULT_SOCKET_URL,
    "auth_mode": "password",
    "theme": "Silverstone Light",
    "font": "Segoe UI",
    "always_on_top": True,
    "widget_x": None,
    "widget_y": 300,
    "confirm_stop": False,
    "request_timeout": 15,
    "dashboard_geometry": None,
}

# Environment variables that override stored settings (see .env.example).
_ENV_OVERRIDES = {
    "api_url": "WORKTRACKER_API_URL",
    "socket_url": "WORKTRACKER_SOCKET_URL",
    "auth_mode": "WORKTRACKER_AUTH_MODE",
}

# Helper to return a truly fresh, default state.
def build_default_state():
    return {
        "meta": {
            "schema_version": _SCHEMA_VERSION,
            "saved_at": now_iso(),
        },
        "settings": dict(_SETTINGS_DEFAULTS),
        "user": None,
    }

# Returns a copy of the settings with any environment overrides applied. Overrides are never written back to disk.
def effective_settings(settings):
    merged = dict(settings)
    for key, env_name in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            merged[key] = value
    return merged

#endregion === Helpers and Paths ===

#region === Saving and Loading State ===

# Loads the current state from PATHS.current / state.json, ensuring the schema is valid and handling default
# fallbacks.
def load_state():
    try:
        if not STATE_PATH.exists():
            log.info("No existing state.json found in `current`, loading fresh state dict.")
            return build_default_state()

        with open(STATE_PATH, "r", encoding="utf-8") as f:
            state = json.load(f)
        if not isinstance(state, dict):
            raise TypeError(f"state.json root is a {type(state).__name__}, expected an object")
        defaulted_values = set()

        # Validate the meta dict
        if "meta" not in state or not isinstance(state["meta"], dict):
            defaulted_values.add("meta")
            state["meta"] = {}
        if "schema_version" not in state["meta"] or not isinstance(state["meta"]["schema_version"], int):
            defaulted_values.add("meta.schema_version")
            state["meta"]["schema_version"] = _SCHEMA_VERSION

        # Validate the settings dict, fill in any necessary defaults
        if "settings" not in state or not isinstance(state["settings"],dict):
            defaulted_values.add("settings")
            state["settings"] = dict(_SETTINGS_DEFAULTS)
        else:
            for key, default in _SETTINGS_DEFAULTS.items():
                if key not in state["settings"]:
                    defaulted_values.add(f"settings.{key}")
                    state["settings"][key] = default

        # The user section is either a stored login or None. Anything else means the file was hand-edited or
        # damaged, so the user is logged out rather than guessed at.
        if "user" not in state:
            defaulted_values.add("user")
            state["user"] = None
        elif state["user"] is not None and (not isinstance(state["user"], dict)
                                            or not state["user"].get("id")
                                            or not state["user"].get("email")):
            defaulted_values.add("user")
            state["user"] = None

        # Log results
        if defaulted_values:
            log.warning(f"Successfully loaded current state dict from '{STATE_PATH}', but with missing values that were defaulted: {', '.join(sorted(defaulted_values))}")
        else:
            log.info(f"Successfully loaded current state dict from '{STATE_PATH}'.")
        return state
    # Fall back to a fresh state dict in case of error, but warn in log
    except (json.JSONDecodeError, OSError, TypeError):
        log.warning("Ran into an error while trying to load state.json, falling back to loading a fresh state dict.",exc_info=True)
        return build_default_state()

# Write the given state to disk under PATHS.current / state.json
def save_state(state):
    state["meta"]["saved_at"] = now_iso()
    STATE_PATH.parent.mkdir(parents=True, exist_ok=True)
    with open(STATE_PATH, "w", encoding="utf-8") as f:
        json.dump(state, f, indent=2)
    log.info(f"Successfully saved state to '{STATE_PATH}'")

# Wipes all local state (stored login and settings). Used by `python -m wt --reset`.
def reset_state():
    if STATE_PATH.exists():
        STATE_PATH.unlink()
        log.info(f"Removed local state at '{STATE_PATH}'")
    else:
        log.info("Reset requested, but there was no local state to remove.")

#endregion === Saving and Loading State ===

#region === Stored user ===

# Small key-value style accessors around the "user" section, so the auth layer never touches the raw dict layout.
class UserStore:

    def __init__(self, state=None):
        self._state = state if state is not None else load_state()

    @property
    def state(self):
        return self._state

    def get(self):
        return self._state.get("user")

    def save(self, user_dict):
        self._state["user"] = user_dict
        save_state(self._state)

    def clear(self):
        self._state["user"] = None
        save_state(self._state)

#endregion === Stored user ===
