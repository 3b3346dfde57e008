"""Plain data types shared by the session, project, task and attendance stores.

Every ``from_json`` here is tolerant of the slightly different shapes the backend
sends for the same thing (embedded objects vs bare ids, ``title`` vs ``taskName``),
and never raises on a missing optional field.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from enum import Enum

from wt.util import as_seconds, extract_ref, format_short, now_local, parse_server_time


# ---------------------------------------------------------------------------
# Users and projects
# ---------------------------------------------------------------------------

@dataclass
class User:
    id: str
    email: str
    name: str
    token: str | None = None
    refresh_token: str | None = None
    role: str | None = None
    permissions: list = field(default_factory=list)
    additional_permissions: list = field(default_factory=list)
    created_at: datetime = field(default_factory=now_local)
    last_login_at: datetime | None = None

    @staticmethod
    def from_login_response(payload):
        user = payload["user"]
        email = user["email"]
        now = now_local()
        return User(
            id=str(user["id"]),
            email=email,
            name=email.split("@")[0],
            token=payload.get("accessToken"),
            refresh_token=payload.get("refreshToken"),
            role=user.get("role"),
            permissions=list(user.get("permissions") or []),
            additional_permissions=list(user.get("additionalPermissions") or []),
            created_at=now,
            last_login_at=now,
        )

    # Local storage round trip (state.json "user" section)
    def to_json(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "token": self.token,
            "refreshToken": self.refresh_token,
            "role": self.role,
            "permissions": self.permissions,
            "additionalPermissions": self.additional_permissions,
            "createdAt": self.created_at.isoformat(),
            "lastLoginAt": self.last_login_at.isoformat() if self.last_login_at else None,
        }

    @staticmethod
    def from_json(data):
        return User(
            id=str(data["id"]),
            email=data["email"],
            name=data.get("name") or data["email"].split("@")[0],
            token=data.get("token"),
            refresh_token=data.get("refreshToken"),
            role=data.get("role"),
            permissions=list(data.get("permissions") or []),
            additional_permissions=list(data.get("additionalPermissions") or []),
            created_at=parse_server_time(data.get("createdAt")) or now_local(),
            last_login_at=parse_server_time(data.get("lastLoginAt")),
        )

    def with_tokens(self, token, refresh_token=None):
        return replace(self, token=token, refresh_token=refresh_token or self.refresh_token)

    def __str__(self):
        return f"User(id: {self.id}, email: {self.email}, name: {self.name}, role: {self.role})"


@dataclass
class Project:
    id: str
    name: str
    status: str = "active"
    client: str = ""
    image: str | None = None
    total_seconds: int = 0

    @staticmethod
    def from_json(data):
        total = data.get("totalSeconds", data.get("totalTime", 0))
        return Project(
            id=str(data.get("_id") or data.get("id") or ""),
            name=str(data.get("name") or ""),
            status=str(data.get("status") or "active"),
            client=str(data.get("client") or ""),
            image=data.get("projectImage") or data.get("image"),
            total_seconds=int(total) if isinstance(total, (int, float)) else 0,
        )


# ---------------------------------------------------------------------------
# Active session and push events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ActiveSession:
    """The single currently running timer, as last reported by the server.

    ``started_at`` is always an aware local datetime.  ``id`` is ``"pending"``
    between a local start and the server's ``timeEntry:started`` event.
    """
    id: str
    project_id: str
    project_name: str
    started_at: datetime
    is_running: bool = True

    def elapsed(self, now=None):
        if not self.is_running:
            return timedelta(0)
        delta = (now or now_local()) - self.started_at
        return max(delta, timedelta(0))

    def __str__(self):
        return (f"ActiveSession(id: {self.id}, projectId: {self.project_id}, projectName: {self.project_name}, "
                f"startedAt: {self.started_at.isoformat()}, isRunning: {self.is_running}, "
                f"elapsed: {int(self.elapsed().total_seconds())}s)")


class TimeEntryEventType(Enum):
    STARTED = "started"
    ENDED = "ended"


@dataclass(frozen=True)
class TimeEntryEvent:
    type: TimeEntryEventType
    id: str
    user_id: str
    project_id: str
    project_name: str
    started_at: datetime
    ended_at: datetime | None = None
    duration: int | None = None
    source: str = "unknown"
    open_status: bool = False

    @staticmethod
    def from_payload(event_type, payload):
        project_id, project_name = extract_ref(payload.get("project"))
        duration = payload.get("duration")
        ended = event_type == TimeEntryEventType.ENDED
        return TimeEntryEvent(
            type=event_type,
            id=str(payload.get("_id") or ""),
            user_id=str(payload.get("user") or ""),
            project_id=project_id or "",
            project_name=project_name,
            started_at=parse_server_time(payload.get("startedAt")) or now_local(),
            ended_at=(parse_server_time(payload.get("endedAt")) or now_local()) if ended else None,
            duration=as_seconds(duration) if ended else None,
            source=str(payload.get("source") or "unknown"),
            open_status=payload.get("openStatus") is True,
        )

    @staticmethod
    def from_started_payload(payload):
        return TimeEntryEvent.from_payload(TimeEntryEventType.STARTED, payload)

    @staticmethod
    def from_ended_payload(payload):
        return TimeEntryEvent.from_payload(TimeEntryEventType.ENDED, payload)

    def __str__(self):
        return (f"TimeEntryEvent(type: {self.type.value}, projectId: {self.project_id}, "
                f"projectName: {self.project_name}, openStatus: {self.open_status})")


# ---------------------------------------------------------------------------
# Attendance
# ---------------------------------------------------------------------------

@dataclass
class AttendanceDay:
    id: str
    user_id: str
    day: datetime
    intervals: list
    total_seconds: float = 0.0
    justification: dict | None = None

    @property
    def has_checked_in(self):
        return len(self.intervals) > 0

    @property
    def has_checked_out(self):
        return len(self.intervals) > 1

    @property
    def check_in_time(self):
        return self.intervals[0] if self.intervals else None

    @property
    def check_out_time(self):
        return self.intervals[-1] if len(self.intervals) > 1 else None

    @property
    def formatted_total(self):
        total = int(self.total_seconds)
        hours, minutes = total // 3600, (total % 3600) // 60
        return f"{hours}h {minutes}m" if hours else f"{minutes}m"

    @staticmethod
    def format_clock(moment):
        return moment.strftime("%I:%M %p").lstrip("0") if moment else "--"

    @staticmethod
    def from_json(data):
        intervals = [t for t in (parse_server_time(v) for v in data.get("intervals") or []) if t is not None]
        justification = data.get("justification")
        total = data.get("totalSeconds")
        return AttendanceDay(
            id=str(data.get("_id") or data.get("id") or ""),
            user_id=str(data.get("user") or ""),
            day=parse_server_time(data.get("day")) or now_local(),
            intervals=intervals,
            total_seconds=float(total) if isinstance(total, (int, float)) else 0.0,
            justification=justification if isinstance(justification, dict) else None,
        )


# ---------------------------------------------------------------------------
# Task reports
# ---------------------------------------------------------------------------

def _ref_id(value):
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        return value.get("_id") or value.get("id")
    return None


@dataclass
class ReportTask:
    id: str
    user_id: str
    report_date: datetime
    project_id: str
    task_name: str
    task_description: str = ""
    attachments: list = field(default_factory=list)
    report_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @staticmethod
    def from_json(data):
        # Tasks arrive either bare or nested in a daily report under "task"
        task = data.get("task") if isinstance(data.get("task"), dict) else data

        attachments = []
        for item in task.get("taskAttachments") or task.get("images") or []:
            if isinstance(item, str):
                url = item
            elif isinstance(item, dict):
                url = item.get("url") or item.get("path") or ""
            else:
                url = ""
            if url:
                attachments.append(url)

        project_id = _ref_id(task.get("projectId") or task.get("project")) or ""

        report_id = _ref_id(task.get("reportId")) or _ref_id(task.get("dailyReportId"))
        if report_id is None and data.get("reportId") and data.get("reportId") != task.get("_id"):
            report_id = data.get("reportId")
        if report_id is None:
            report_id = data.get("dailyReportId") or _ref_id(task.get("report"))

        return ReportTask(
            id=str(task.get("_id") or task.get("id") or ""),
            report_id=report_id,
            user_id=str(task.get("userId") or data.get("userId") or ""),
            report_date=parse_server_time(task.get("reportDate") or data.get("reportDate")) or now_local(),
            project_id=str(project_id),
            task_name=str(task.get("taskName") or task.get("title") or ""),
            task_description=str(task.get("taskDescription") or task.get("description") or ""),
            attachments=attachments,
            created_at=parse_server_time(task.get("createdAt")),
            updated_at=parse_server_time(task.get("updatedAt")),
        )

    def __eq__(self, other):
        return isinstance(other, ReportTask) and other.id == self.id

    def __hash__(self):
        return hash(self.id)


@dataclass
class PendingTimeEntry:
    """A previous-day time entry still waiting for its task report."""
    id: str
    project_id: str
    project_name: str
    started_at: datetime
    date: date
    duration: int
    task_submitted: bool = False
    open_status: str = ""
    ended_at: datetime | None = None
    entry_ids: list = field(default_factory=list)
    project_image: str | None = None

    @property
    def all_entry_ids(self):
        return self.entry_ids or [self.id]

    @property
    def date_for_api(self):
        return self.date.strftime("%Y-%m-%d")

    @property
    def formatted_duration(self):
        return format_short(self.duration)

    @property
    def formatted_time_range(self):
        start = self.started_at.strftime("%I:%M %p")
        end = self.ended_at.strftime("%I:%M %p") if self.ended_at else "In Progress"
        return f"{start} - {end}"

    @staticmethod
    def from_json(data):
        project = data.get("project") if isinstance(data.get("project"), dict) else {}
        project_id, project_name = extract_ref(data.get("project"))

        entry_ids = []
        for item in data.get("entryIds") or []:
            entry_id = _ref_id(item)
            if entry_id:
                entry_ids.append(str(entry_id))

        started_at = parse_server_time(data.get("startedAt")) or now_local()
        day = parse_server_time(data.get("date") or data.get("reportDate"))
        duration = data.get("duration")

        return PendingTimeEntry(
            id=str(data.get("_id") or data.get("id") or ""),
            entry_ids=entry_ids,
            project_id=project_id or "",
            project_name=project_name or "Unknown Project",
            project_image=project.get("projectImage"),
            started_at=started_at,
            ended_at=parse_server_time(data.get("endedAt")),
            date=(day or started_at).date(),
            duration=as_seconds(duration) or 0,
            task_submitted=data.get("taskSubmitted") is True,
            open_status=str(data.get("openStatus") or ""),
        )
