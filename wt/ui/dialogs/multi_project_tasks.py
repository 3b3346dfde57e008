"""Task check shown before checking out and before switching projects.

Check-out lists every project worked on today, a project switch lists only the
project being left.  Each one needs at least one task before "Continue"
unlocks; Cancel aborts the check-out or switch.
"""

from PySide6.QtCore import Qt, QTimer
from PySide6.QtWidgets import QDialog, QHBoxLayout, QScrollArea, QVBoxLayout, QWidget
from wt.common.logger import log
from wt.core.tasks import LoadState, TaskCheck, TaskCheckMode
from wt.ui.dialogs.pending_tasks import AddTaskDialog
from wt.ui.theme import build_stylesheet
from wt.ui.widgets import MessageBanner, make_button, make_label
from wt.util import format_short


class MultiProjectTaskDialog(QDialog):

    def __init__(self, ctx, bridge, check, parent=None):
        super().__init__(parent)
        self.ctx = ctx
        self.bridge = bridge
        self.check = check
        self.font_family = ctx.settings["font"]
        checkout = check.mode == TaskCheckMode.CHECKOUT

        # Output attribute, read after exec()
        self.total_tasks = 0

        self.setWindowTitle("Check out" if checkout else "Switch project")
        self.setWindowFlags(self.windowFlags() | Qt.WindowStaysOnTopHint)
        self.setModal(True)
        self.setMinimumSize(520, 380)
        self.setStyleSheet(build_stylesheet(ctx.settings["theme"]))

        outer = QVBoxLayout(self)
        self._header = make_label("", self.font_family, 13, bold=True)
        outer.addWidget(self._header)
        if checkout:
            hint = "Add at least one task for every project you worked on today before checking out."
        else:
            hint = "Add a task for the project you are leaving before switching."
        outer.addWidget(make_label(hint, self.font_family, 10, role="muted"))

        self._banner = MessageBanner(ctx.settings["theme"])
        outer.addWidget(self._banner)

        self._list_widget = QWidget()
        self._list = QVBoxLayout(self._list_widget)
        self._list.setAlignment(Qt.AlignTop)
        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setWidget(self._list_widget)
        outer.addWidget(scroll, 1)

        footer = QHBoxLayout()
        self._retry_btn = make_button("Retry", self.font_family, 10, on_click=self._retry)
        footer.addWidget(self._retry_btn)
        footer.addStretch()
        footer.addWidget(make_button("Cancel", self.font_family, 10, on_click=self.reject))
        self._continue_btn = make_button("Continue", self.font_family, 11, role="primary", on_click=self._continue)
        footer.addWidget(self._continue_btn)
        outer.addLayout(footer)

        # Both stores notify from worker threads; the bridge brings them back to the GUI thread
        self._unwatch = [bridge.watch(check, "task_check"), bridge.watch(ctx.project_tasks, "project_tasks")]
        bridge.store_changed.connect(self._on_store_changed)
        self.finished.connect(self._stop_watching)

        self._rebuild()
        bridge.run_in_background(check.load, on_error=self._show_error)

    # Runs the check-out task check. True means go ahead and record the check-out.
    @classmethod
    def show_for_checkout(cls, ctx, bridge, parent=None):
        check = TaskCheck.for_checkout(ctx.api, ctx.project_tasks, ctx.session)
        return cls(ctx, bridge, check, parent).exec() == QDialog.Accepted

    # Runs the task check for the running project. True means go ahead and switch.
    @classmethod
    def show_for_project_switch(cls, ctx, bridge, parent=None):
        check = TaskCheck.for_project_switch(ctx.api, ctx.project_tasks, ctx.session)
        return cls(ctx, bridge, check, parent).exec() == QDialog.Accepted

    def _stop_watching(self):
        if not self._unwatch:
            return
        for unwatch in self._unwatch:
            unwatch()
        self._unwatch = []
        self.bridge.store_changed.disconnect(self._on_store_changed)

    def _on_store_changed(self, name):
        if name in ("task_check", "project_tasks"):
            self._rebuild()

    # ------------------------------------------------------------------ #
    #  Layout                                                              #
    # ------------------------------------------------------------------ #

    def _clear_list(self):
        while self._list.count():
            item = self._list.takeAt(0)
            if item.widget() is not None:
                item.widget().deleteLater()

    def _rebuild(self):
        self._clear_list()
        check = self.check
        state = check.state

        if check.nothing_to_report:
            log.info("No projects tracked today, nothing to report before check-out")
            QTimer.singleShot(0, self.accept)
            return

        if state in (LoadState.INITIAL, LoadState.LOADING):
            self._header.setText("Loading tasks...")
        elif state == LoadState.ERROR:
            self._header.setText("Couldn't load tasks")
            self._list.addWidget(make_label(check.error or "Unknown error", self.font_family, 10, role="error"))
        else:
            missing = len(check.missing)
            self._header.setText(f"{missing} project(s) still need a task" if missing
                                 else f"All projects have tasks ({check.total_tasks} total)")

        for work in check.projects:
            self._list.addWidget(self._build_project_card(work))

        self._retry_btn.setVisible(state == LoadState.ERROR)
        self._continue_btn.setEnabled(check.can_proceed)
        self._continue_btn.setText("Continue" if check.can_proceed else "Add tasks to continue")

    def _build_project_card(self, work):
        tasks = self.check.tasks_for(work.project_id)
        card = QWidget()
        card.setObjectName("card")
        lay = QVBoxLayout(card)

        top = QHBoxLayout()
        text = QVBoxLayout()
        text.addWidget(make_label(work.project_name, self.font_family, 11, bold=True))
        text.addWidget(make_label(f"Worked today: {format_short(work.seconds)}", self.font_family, 9, role="muted"))
        top.addLayout(text, 1)

        if tasks.state == LoadState.LOADING:
            status = make_label("Loading...", self.font_family, 9, role="muted")
        elif tasks.state == LoadState.ERROR:
            status = make_label("Couldn't load tasks", self.font_family, 9, role="error")
        elif tasks.has_tasks:
            status = make_label(f"{tasks.task_count} task(s)", self.font_family, 9)
        else:
            status = make_label("No tasks yet", self.font_family, 9, role="error")
        top.addWidget(status)
        top.addWidget(make_button("Add task", self.font_family, 10, role="primary",
                                  on_click=lambda: self._add_task(work)))
        lay.addLayout(top)

        for task in tasks.tasks if tasks.state == LoadState.LOADED else []:
            tracked = self.ctx.task_durations.get(task.id).total_seconds()
            line = f"- {task.task_name}" + (f"  ({format_short(tracked)} tracked)" if tracked > 0 else "")
            lay.addWidget(make_label(line, self.font_family, 9))
        return card

    # ------------------------------------------------------------------ #
    #  Actions                                                             #
    # ------------------------------------------------------------------ #

    def _add_task(self, work):
        dlg = AddTaskDialog(self, work.project_name, f"{self.check.date}  worked {format_short(work.seconds)}",
                            self.font_family)
        if dlg.exec() != QDialog.Accepted:
            return
        self.bridge.run_in_background(self.check.submit_task, work.project_id, dlg.chosen_name,
                                      dlg.chosen_description,
                                      on_done=lambda _: self._banner.show_message("Task added", "success"),
                                      on_error=self._show_error)

    def _retry(self):
        self._banner.clear_message()
        self.bridge.run_in_background(self.check.retry, on_error=self._show_error)

    def _continue(self):
        if not self.check.can_proceed:
            self._banner.show_message("Please add a task for every project before continuing", "warning")
            return
        self.total_tasks = self.check.total_tasks
        log.info(f"Task check ({self.check.mode.value}) passed with {self.total_tasks} task(s)")
        self.accept()

    def _show_error(self, error):
        self._banner.show_message(str(error), "error")
