"""The active timer session, kept consistent with the server.

The server owns the truth about what is running.  ``reconcile`` overwrites
local state with it on startup and resume, push events keep it current in
between, and local starts set an optimistic session (id ``"pending"``) that
the server's ``started`` event later corrects.
"""

from datetime import timedelta
from wt.common.logger import log
from wt.core.models import ActiveSession, TimeEntryEventType
from wt.net.api import ApiError
from wt.util import Listeners, as_seconds, extract_ref, now_local, parse_server_time

PENDING_SESSION_ID = "pending"


def _run_inline(fn):
    fn()


class SessionStore(Listeners):

    # `events` is anything with subscribe(callback) -> unsubscribe that delivers TimeEntryEvents (the UI passes its
    # Qt bridge so events arrive on the GUI thread). `background` runs follow-up work like project refreshes; the
    # default runs it inline.
    def __init__(self, api, projects, events=None, task_durations=None, clock=now_local, background=None):
        super().__init__()
        self._api = api
        self._projects = projects
        self._events = events
        self._task_durations = task_durations
        self._clock = clock
        self._background = background or _run_inline
        self._unsubscribe_events = None

        self.session = None             # ActiveSession or None
        self.completed = {}             # project id -> timedelta, entries that ended today
        self.active_task_id = None
        self.task_started_at = None

    # ------------------------------------------------------------------ #
    #  Derived values                                                      #
    # ------------------------------------------------------------------ #

    @property
    def is_running(self):
        return self.session is not None and self.session.is_running

    @property
    def current_duration(self):
        if self.session is None:
            return timedelta(0)
        return self.session.elapsed(self._clock())

    @property
    def current_task_duration(self):
        if not self.is_running or self.task_started_at is None:
            return timedelta(0)
        return max(self._clock() - self.task_started_at, timedelta(0))

    # Active elapsed time plus everything that already ended today.
    @property
    def session_total(self):
        total = self.current_duration if self.is_running else timedelta(0)
        for duration in self.completed.values():
            total += duration
        return total

    def completed_for(self, project_id):
        return self.completed.get(project_id, timedelta(0))

    # ------------------------------------------------------------------ #
    #  Reconciliation                                                      #
    # ------------------------------------------------------------------ #

    # Overwrites local state with what the server reports: the open entry (or None) and today's entries.
    def reconcile(self, open_entry, today_entries):
        completed = {}
        for entry in today_entries:
            if entry.get("endedAt") is None:
                continue
            project_id, _ = extract_ref(entry.get("project"))
            if project_id is None:
                continue
            seconds = as_seconds(entry.get("duration")) or 0
            completed[project_id] = completed.get(project_id, timedelta(0)) + timedelta(seconds=seconds)
        self.completed = completed
        log.info(f"Loaded {len(completed)} completed project durations for today")

        if open_entry is None:
            log.info("No open entry on server - clearing local state")
            self._clear_session()
            self.notify()
            return

        project_id, project_name = extract_ref(open_entry.get("project"))
        started_at = parse_server_time(open_entry.get("startedAt"))
        if project_id is None or started_at is None:
            log.warning(f"Could not parse open entry - missing project or startedAt: {open_entry}")
            self._clear_session()
            self.notify()
            return

        project = self._projects.get_project(project_id)
        if not project_name and project is not None:
            project_name = project.name
        if not project_name:
            project_name = "Unknown Project"

        self.session = ActiveSession(
            id=str(open_entry.get("_id") or ""),
            project_id=project_id,
            project_name=project_name,
            started_at=started_at,
        )
        self._projects.select(project)
        log.info(f"Restored session from server: {self.session}")
        self.notify()

    # Fetches the open entry and today's entries, reconciles, then starts listening for push events. A failed fetch
    # is logged and leaves local state as it was.
    def sync_from_server(self):
        log.info("Checking for open entry from server...")
        try:
            open_entry = self._api.get_open_entry()
            today_entries = self._api.get_today_entries()
        except ApiError as e:
            log.error(f"Failed to sync open entry: {e}")
            return False
        self.reconcile(open_entry, today_entries)
        self._start_event_listener()
        return True

    def _start_event_listener(self):
        if self._events is None:
            return
        if self._unsubscribe_events is not None:
            self._unsubscribe_events()
        self._unsubscribe_events = self._events.subscribe(self.handle_event)
        log.info("Listening for time entry events")

    # ------------------------------------------------------------------ #
    #  Push events                                                         #
    # ------------------------------------------------------------------ #

    def handle_event(self, event):
        log.info(f"Handling time entry event: {event}")

        if event.type == TimeEntryEventType.STARTED:
            self.session = ActiveSession(
                id=event.id,
                project_id=event.project_id,
                project_name=event.project_name,
                started_at=event.started_at,
            )
            project = self._projects.get_project(event.project_id)
            if project is not None:
                self._projects.select(project)
            log.info(f"Session started: {event.project_name} at {event.started_at.isoformat()}")
            self.notify()
            return

        if event.duration is not None and event.duration > 0:
            added = timedelta(seconds=event.duration)
            self.completed[event.project_id] = self.completed_for(event.project_id) + added
            log.info(f"Added {event.duration}s to completed durations for {event.project_name}")

        # An end for some other project (another device) must not stop this one
        if self.session is not None and self.session.project_id == event.project_id:
            self._clear_session()
            log.info(f"Session ended: {event.project_name}")
        self.notify()

        self._background(self._projects.refresh_projects)

    # ------------------------------------------------------------------ #
    #  Local actions                                                       #
    # ------------------------------------------------------------------ #

    # Joins the project first if the user has never tracked time on it, then starts the server timer.
    def _start_on_server(self, project):
        if not self._api.has_worked_on_project(project.id):
            log.info(f"Adding current user to project {project.name}")
            self._api.add_myself_to_project(project.id)
        if not self._api.start_time(project.id):
            raise ApiError("Failed to start time on server")

    def _set_pending(self, project):
        self.session = ActiveSession(
            id=PENDING_SESSION_ID,
            project_id=project.id,
            project_name=project.name,
            started_at=self._clock(),
        )
        self._projects.select(project)

    def start_timer(self, project):
        if self.is_running and self.session.project_id == project.id:
            log.info(f"Timer already running for {project.name}")
            return

        if self.is_running:
            self._api.end_time(self.session.project_id)

        self._start_on_server(project)
        self._set_pending(project)
        self.active_task_id = None
        self.task_started_at = None
        log.info(f"Timer started for: {project.name}")
        self.notify()

    def start_timer_with_task(self, project, task_id):
        # Same project already running, this is just a task switch
        if self.is_running and self.session.project_id == project.id:
            self.save_current_task_duration()
            self.active_task_id = task_id
            self.task_started_at = self._clock()
            log.info(f"Switched to task: {task_id}")
            self.notify()
            return

        self.save_current_task_duration()
        if self.is_running:
            self.switch_project(project)
        else:
            self._start_on_server(project)
            self._set_pending(project)

        self.active_task_id = task_id
        self.task_started_at = self._clock()
        log.info(f"Timer started with task: {task_id}")
        self.notify()

    def switch_project(self, project):
        self.save_current_task_duration()
        if self.session is not None and self.session.project_id:
            self._api.end_time(self.session.project_id)

        self._start_on_server(project)
        self._set_pending(project)
        self.active_task_id = None
        log.info(f"Switched to project: {project.name}")
        self.notify()
        self._background(self._projects.refresh_projects)

    def stop_timer(self):
        self.save_current_task_duration()
        if self.session is not None and self.session.project_id:
            if not self._api.end_time(self.session.project_id):
                raise ApiError("Failed to end time on server")

        self._clear_session()
        log.info("Timer stopped")
        self.notify()
        self._background(self._projects.refresh_projects)

    # Adds the active task's elapsed time to its local total before the task changes.
    def save_current_task_duration(self):
        if self.active_task_id is not None and self.task_started_at is not None:
            elapsed = self._clock() - self.task_started_at
            if elapsed.total_seconds() > 0 and self._task_durations is not None:
                self._task_durations.add_duration(self.active_task_id, elapsed)
            self.task_started_at = None

    # ------------------------------------------------------------------ #
    #  Lifecycle                                                           #
    # ------------------------------------------------------------------ #

    # Called once a second by the UI. Elapsed time is derived from started_at, so this only prompts a redraw.
    def tick(self):
        if self.is_running:
            self.notify()

    def _clear_session(self):
        self.session = None
        self.active_task_id = None
        self.task_started_at = None
        self._projects.select(None)

    # Drops all session state, e.g. on logout.
    def clear(self):
        self.dispose()
        self._clear_session()
        self.completed = {}
        self.notify()

    def dispose(self):
        if self._unsubscribe_events is not None:
            self._unsubscribe_events()
            self._unsubscribe_events = None
