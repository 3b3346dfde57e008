"""Task reports: per-project task lists, local per-task durations, the
previous-days "pending tasks" queue that must be cleared before tracking, and
the per-project task check run before check-out or a project switch.

Like the other stores these are plain objects.  They call the API directly and
expect the UI to run them off the GUI thread.
"""

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from wt.common.logger import log
from wt.core.models import PendingTimeEntry, ReportTask
from wt.net.api import ApiError
from wt.util import Listeners, as_seconds, extract_ref, now_local

MAX_RETRIES_BEFORE_SKIP = 3


class LoadState(Enum):
    INITIAL = "initial"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Project tasks
# ---------------------------------------------------------------------------

class ProjectTasks:
    """Task list for one (project id, YYYY-MM-DD) pair."""

    def __init__(self, project_id, date):
        self.project_id = project_id
        self.date = date
        self.state = LoadState.INITIAL
        self.tasks = []
        self.error = None

    @property
    def has_tasks(self):
        return self.state == LoadState.LOADED and len(self.tasks) > 0

    @property
    def task_count(self):
        return len(self.tasks) if self.state == LoadState.LOADED else 0


class ProjectTasksStore(Listeners):

    def __init__(self, api):
        super().__init__()
        self._api = api
        self._entries = {}      # (project_id, date) -> ProjectTasks

    def get(self, project_id, date):
        key = (project_id, date)
        if key not in self._entries:
            self._entries[key] = ProjectTasks(project_id, date)
        return self._entries[key]

    # Loads once per key. Skipped while a load is in flight or once the list is loaded; use refresh() to force.
    def load_tasks(self, project_id, date):
        entry = self.get(project_id, date)
        if entry.state == LoadState.LOADING:
            log.info(f"Already loading tasks for {project_id} on {date}, skipping")
            return entry
        if entry.state == LoadState.LOADED:
            log.info(f"Tasks already loaded for {project_id} on {date}, skipping")
            return entry
        return self._fetch(entry)

    def refresh(self, project_id, date):
        entry = self.get(project_id, date)
        if entry.state == LoadState.LOADING:
            log.info(f"Already loading tasks for {project_id} on {date}, skipping refresh")
            return entry
        return self._fetch(entry)

    def _fetch(self, entry):
        entry.state = LoadState.LOADING
        self.notify()
        try:
            raw = self._api.get_project_tasks(entry.project_id, entry.date)
            entry.tasks = [ReportTask.from_json(item) for item in raw]
            entry.error = None
            entry.state = LoadState.LOADED
            log.info(f"Loaded {len(entry.tasks)} tasks for {entry.project_id} on {entry.date}")
        except ApiError as e:
            log.error(f"Failed to load tasks for {entry.project_id} on {entry.date}: {e}")
            entry.error = str(e)
            entry.state = LoadState.ERROR
        self.notify()
        return entry

    # Creates a task on the server for the project and day, then adds it to the cached list. ApiError propagates.
    def submit_task(self, project_id, date, name, description=""):
        name = name.strip()
        if not name:
            raise ValueError("Task name is required")

        raw = self._api.create_task(project_id, date, name, description.strip())
        task = ReportTask.from_json(raw) if raw else None
        log.info(f"Submitted task '{name}' for {project_id} on {date}")
        if task is not None:
            self.add_task(project_id, date, task)
        else:
            # Server accepted it but sent no task back, so fetch the list instead
            self.refresh(project_id, date)
        return task

    def add_task(self, project_id, date, task):
        entry = self.get(project_id, date)
        entry.tasks = entry.tasks + [task] if entry.state == LoadState.LOADED else [task]
        entry.state = LoadState.LOADED
        entry.error = None
        self.notify()

    def clear(self):
        self._entries.clear()
        self.notify()


# ---------------------------------------------------------------------------
# Local task durations
# ---------------------------------------------------------------------------

# Time spent on each task while it was the active one. Kept in memory only, the server tracks time per project.
class TaskDurations:

    def __init__(self):
        self._durations = {}

    def add_duration(self, task_id, elapsed):
        if elapsed <= timedelta(0):
            return
        self._durations[task_id] = self._durations.get(task_id, timedelta(0)) + elapsed
        log.debug(f"Added {int(elapsed.total_seconds())}s to task {task_id}")

    def get(self, task_id):
        return self._durations.get(task_id, timedelta(0))

    def clear(self):
        self._durations.clear()


# ---------------------------------------------------------------------------
# Pending tasks
# ---------------------------------------------------------------------------

class PendingState(Enum):
    INITIAL = "initial"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"
    COMPLETED = "completed"
    SKIPPED = "skipped"


class PendingTasksStore(Listeners):
    """Previous-day time entries that still need a task report."""

    def __init__(self, api, project_tasks=None):
        super().__init__()
        self._api = api
        self._project_tasks = project_tasks
        self.state = PendingState.INITIAL
        self.entries = []
        self.error = None
        self.retry_count = 0

    @property
    def can_skip(self):
        return self.retry_count >= MAX_RETRIES_BEFORE_SKIP

    # True while the user still owes a task report, i.e. the dialog must stay open.
    @property
    def blocking(self):
        return self.state in (PendingState.LOADING, PendingState.LOADED, PendingState.ERROR)

    def load(self):
        self.state = PendingState.LOADING
        self.notify()
        try:
            raw = self._api.get_pending_entries()
            entries = [PendingTimeEntry.from_json(item) for item in raw]
        except ApiError as e:
            log.error(f"Failed to load pending entries: {e}")
            self.error = str(e)
            self.state = PendingState.ERROR
            self.notify()
            return

        self.error = None
        self.entries = [e for e in entries if not e.task_submitted]
        log.info(f"Loaded {len(self.entries)} pending time entries")
        self.state = PendingState.LOADED if self.entries else PendingState.COMPLETED
        self.notify()

    def retry(self):
        self.retry_count += 1
        log.info(f"Retrying pending entries load (attempt {self.retry_count})")
        self.load()

    def skip(self):
        if not self.can_skip:
            log.warning("Skip requested before the retry limit was reached, ignoring")
            return False
        log.info("Pending tasks skipped for this session")
        self.state = PendingState.SKIPPED
        self.notify()
        return True

    # Posts the task report for the entry (covering every merged entry id), then drops the entry from the queue.
    # ApiError propagates so the dialog can show it inline.
    def submit_task(self, entry, name, description=""):
        name = name.strip()
        if not name:
            raise ValueError("Task name is required")

        raw = self._api.create_task(entry.project_id, entry.date_for_api, name, description.strip(),
                                    entry_ids=entry.all_entry_ids)
        task = ReportTask.from_json(raw) if raw else None
        log.info(f"Submitted task '{name}' for {entry.project_name} on {entry.date_for_api}")

        if task is not None and self._project_tasks is not None:
            self._project_tasks.add_task(entry.project_id, entry.date_for_api, task)
        self.mark_entry_completed(entry.id)
        return task

    def mark_entry_completed(self, entry_id):
        self.entries = [e for e in self.entries if e.id != entry_id]
        if not self.entries and self.state == PendingState.LOADED:
            self.state = PendingState.COMPLETED
            log.info("All pending entries have tasks")
        self.notify()

    def clear(self):
        self.state = PendingState.INITIAL
        self.entries = []
        self.error = None
        self.retry_count = 0
        self.notify()


# ---------------------------------------------------------------------------
# Task check (check-out and project switch)
# ---------------------------------------------------------------------------

@dataclass
class ProjectWork:
    project_id: str
    project_name: str
    seconds: int = 0


# Groups today's closed entries by project, in first-seen order, and adds the running timer's elapsed time. A running
# project with no closed entries yet gets its completed time plus the elapsed time.
def group_work_by_project(entries, session=None):
    grouped = {}
    for entry in entries:
        if not isinstance(entry, dict) or entry.get("endedAt") is None:
            continue
        project_id, project_name = extract_ref(entry.get("project"))
        project_id = project_id or entry.get("projectId")
        if not project_id:
            continue
        work = grouped.get(project_id)
        if work is None:
            name = project_name or entry.get("projectName") or "Unknown Project"
            work = grouped[project_id] = ProjectWork(str(project_id), name)
        work.seconds += as_seconds(entry.get("duration")) or 0

    if session is not None and session.is_running:
        running = session.session
        elapsed = int(session.current_duration.total_seconds())
        work = grouped.get(running.project_id)
        if work is not None:
            work.seconds += elapsed
        else:
            completed = int(session.completed_for(running.project_id).total_seconds())
            grouped[running.project_id] = ProjectWork(running.project_id, running.project_name, completed + elapsed)

    return list(grouped.values())


class TaskCheckMode(Enum):
    CHECKOUT = "checkout"
    PROJECT_SWITCH = "project_switch"


class TaskCheck(Listeners):
    """Every project worked on today needs at least one task before the user
    checks out, and the running project needs one before switching away.

    Built fresh for each check. Task lists come from (and stay cached in) the
    shared ProjectTasksStore, so a second check on the same day is instant.
    """

    def __init__(self, api, project_tasks, session, mode, date=None):
        super().__init__()
        self._api = api
        self._project_tasks = project_tasks
        self._session = session
        self.mode = mode
        self.date = date or now_local().strftime("%Y-%m-%d")
        self.state = LoadState.INITIAL
        self.projects = []
        self.error = None

    # The project being switched away from, with everything tracked on it today.
    @classmethod
    def for_project_switch(cls, api, project_tasks, session, date=None):
        check = cls(api, project_tasks, session, TaskCheckMode.PROJECT_SWITCH, date)
        check.projects = group_work_by_project([], session)
        return check

    @classmethod
    def for_checkout(cls, api, project_tasks, session, date=None):
        return cls(api, project_tasks, session, TaskCheckMode.CHECKOUT, date)

    def tasks_for(self, project_id):
        return self._project_tasks.get(project_id, self.date)

    @property
    def can_proceed(self):
        return (self.state == LoadState.LOADED and bool(self.projects)
                and all(self.tasks_for(p.project_id).has_tasks for p in self.projects))

    # Check-out with nothing tracked today has nothing to report.
    @property
    def nothing_to_report(self):
        return self.state == LoadState.LOADED and not self.projects

    @property
    def total_tasks(self):
        return sum(self.tasks_for(p.project_id).task_count for p in self.projects)

    @property
    def missing(self):
        return [p for p in self.projects if not self.tasks_for(p.project_id).has_tasks]

    # Groups today's work (check-out only) and loads each project's task list. With force, lists are fetched again
    # even when cached. A failed task list leaves that project in ERROR, which the dialog offers to retry.
    def load(self, force=False):
        self.state = LoadState.LOADING
        self.error = None
        self.notify()

        if self.mode == TaskCheckMode.CHECKOUT:
            try:
                entries = self._api.get_today_entries()
            except ApiError as e:
                log.error(f"Failed to load today's entries for the task check: {e}")
                self.error = str(e)
                self.state = LoadState.ERROR
                self.notify()
                return
            self.projects = group_work_by_project(entries, self._session)
            log.info(f"Task check found {len(self.projects)} project(s) worked on today")

        fetch = self._project_tasks.refresh if force else self._project_tasks.load_tasks
        for work in self.projects:
            fetch(work.project_id, self.date)

        failed = [p.project_name for p in self.projects if self.tasks_for(p.project_id).state == LoadState.ERROR]
        if failed:
            self.error = f"Couldn't load tasks for {', '.join(failed)}"
            self.state = LoadState.ERROR
        else:
            self.state = LoadState.LOADED
        self.notify()

    def retry(self):
        log.info(f"Retrying task check ({self.mode.value})")
        self.load(force=True)

    def submit_task(self, project_id, name, description=""):
        task = self._project_tasks.submit_task(project_id, self.date, name, description)
        self.notify()
        return task
