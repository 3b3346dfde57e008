"""REST client for the time-tracking backend.

Thin wrappers over ``requests``.  Every call raises ``ApiError`` on failure;
callers decide whether that becomes a banner, an inline message, or a log line.
"""

import requests
from wt.common.logger import log


class ApiError(Exception):

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self):
        return self.message


# Unwraps `{"success": true, key: value}` envelopes. Falls back to the whole payload when the key is absent, since
# some endpoints return the object (or list) directly.
def _unwrap(data, key, default=None):
    if isinstance(data, dict):
        if key in data:
            return data[key]
        return data if default is None else default
    if isinstance(data, list) and isinstance(default, list):
        return data
    return default


def _as_list(value):
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


class ApiClient:

    def __init__(self, base_url, token_provider, timeout=15, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        self._token_provider = token_provider

        # Wired up after construction, since the refresher itself needs an ApiClient to talk to /auth/refresh.
        self.refresher = None           # () -> bool
        self.on_auth_failure = None     # () -> None

    def _url(self, path):
        return f"{self.base_url}/{path.lstrip('/')}"

    def _headers(self, auth):
        if not auth:
            return {}
        token = self._token_provider()
        return {"Authorization": f"Bearer {token}"} if token else {}

    @staticmethod
    def _error_message(response):
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        return f"Request failed with status {response.status_code}"

    # Sends a request and returns the decoded JSON body ({} for empty bodies). A 401 on an authenticated call gets one
    # coordinated token refresh and a single retry; if the refresh fails the auth-failure hook runs (force logout)
    # unless notify_auth_failure is off.
    def request(self, method, path, params=None, json=None, auth=True, retry_on_401=True, notify_auth_failure=True):
        url = self._url(path)
        try:
            response = self.session.request(
                method, url,
                params=params,
                json=json,
                headers=self._headers(auth),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            log.warning(f"{method} {url} failed: {e}")
            raise ApiError("Network error. Please check your internet connection.") from e

        if response.status_code == 401 and auth:
            if retry_on_401 and self.refresher is not None:
                log.info(f"{method} {url} returned 401, attempting token refresh")
                if self.refresher():
                    return self.request(method, path, params=params, json=json, auth=auth, retry_on_401=False,
                                        notify_auth_failure=notify_auth_failure)
            log.error(f"Unauthorized response from {url} - user may need to re-login")
            if notify_auth_failure and self.on_auth_failure is not None:
                self.on_auth_failure()
            raise ApiError("Unauthorized - please login again", 401)

        if not response.ok:
            message = self._error_message(response)
            log.error(f"{method} {url} failed with status {response.status_code}: {message}")
            raise ApiError(message, response.status_code)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            log.error(f"{method} {url} returned a body that is not JSON")
            raise ApiError("Unexpected response from server.", response.status_code) from e

    def get(self, path, **kwargs):
        return self.request("GET", path, **kwargs)

    def post(self, path, **kwargs):
        return self.request("POST", path, **kwargs)

    # ------------------------------------------------------------------ #
    #  Time entries                                                        #
    # ------------------------------------------------------------------ #

    # The user's currently open (running) entry, or None.
    def get_open_entry(self):
        data = self.get("/time-entries/open")
        entry = _unwrap(data, "entry")
        if isinstance(entry, dict) and "project" in entry:
            return entry
        return None

    def get_today_entries(self):
        data = self.get("/time-entries/today")
        entries = _as_list(_unwrap(data, "entries", []))
        log.info(f"Fetched {len(entries)} time entries for today")
        return entries

    def get_pending_entries(self):
        data = self.get("/time-entries/pending")
        return _as_list(_unwrap(data, "entries", []))

    def start_time(self, project_id):
        data = self.post("/time-entries/start", json={"project": project_id, "source": "desktop"})
        return _unwrap(data, "success", True) is True

    def end_time(self, project_id):
        data = self.post("/time-entries/end", json={"project": project_id, "source": "desktop"})
        return _unwrap(data, "success", True) is True

    # ------------------------------------------------------------------ #
    #  Projects and tasks                                                  #
    # ------------------------------------------------------------------ #

    def get_projects(self, district=None, type=None, sort_by=None, sort_order=None):
        params = {k: v for k, v in {
            "district": district,
            "type": type,
            "sortBy": sort_by,
            "sortOrder": sort_order,
        }.items() if v is not None}
        data = self.get("/projects", params=params or None)
        if isinstance(data, dict) and data.get("success") is True and isinstance(data.get("projects"), list):
            projects = _as_list(data["projects"])
            log.info(f"Successfully fetched {len(projects)} projects from API")
            return projects
        log.warning("Unexpected API response format for projects")
        return []

    def has_worked_on_project(self, project_id):
        data = self.get(f"/projects/{project_id}/worked")
        return _unwrap(data, "hasWorked", False) is True

    def add_myself_to_project(self, project_id):
        data = self.post(f"/projects/{project_id}/members/me")
        return _unwrap(data, "success", True) is True

    def get_project_tasks(self, project_id, date):
        data = self.get("/daily-reports/tasks", params={"project": project_id, "date": date})
        return _as_list(_unwrap(data, "tasks", []))

    def create_task(self, project_id, date, title, description="", entry_ids=None):
        payload = {
            "project": project_id,
            "date": date,
            "title": title,
            "description": description,
        }
        if entry_ids:
            payload["entryIds"] = list(entry_ids)
        data = self.post("/daily-reports/tasks", json=payload)
        task = _unwrap(data, "task")
        return task if isinstance(task, dict) else {}

    # ------------------------------------------------------------------ #
    #  Attendance                                                          #
    # ------------------------------------------------------------------ #

    def get_my_attendance(self):
        data = self.get("/attendance/me")
        attendance = _unwrap(data, "attendance")
        return attendance if isinstance(attendance, dict) and "day" in attendance else None

    # First call of the day checks in, later calls add an interval (check out).
    def record_biometric(self):
        data = self.post("/attendance/biometric")
        attendance = _unwrap(data, "attendance")
        return attendance if isinstance(attendance, dict) and "day" in attendance else None
