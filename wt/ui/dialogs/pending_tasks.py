"""Blocking dialog listing previous-day time entries that still need a task
report.  It can't be dismissed until every entry has a task, or until loading
has failed enough times that "Skip for now" unlocks.
"""

from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QDialog,
    QHBoxLayout,
    QLineEdit,
    QScrollArea,
    QTextEdit,
    QVBoxLayout,
    QWidget,
)
from wt.core.tasks import PendingState
from wt.ui.theme import build_stylesheet
from wt.ui.widgets import MessageBanner, make_button, make_label


class AddTaskDialog(QDialog):

    def __init__(self, parent, project_name, details, font_family):
        super().__init__(parent)
        self.setWindowTitle(f"Add task - {project_name}")
        self.setModal(True)
        self.setMinimumWidth(380)

        # Output attributes, read after exec()
        self.chosen_name = ""
        self.chosen_description = ""

        lay = QVBoxLayout(self)
        lay.addWidget(make_label(project_name, font_family, 11, bold=True))
        lay.addWidget(make_label(details, font_family, 9, role="muted"))
        self._name = QLineEdit()
        self._name.setPlaceholderText("What did you work on?")
        self._description = QTextEdit()
        self._description.setPlaceholderText("Details (optional)")
        self._description.setFixedHeight(90)
        lay.addWidget(self._name)
        lay.addWidget(self._description)

        self._error = make_label("", font_family, 9, role="error")
        self._error.setVisible(False)
        lay.addWidget(self._error)

        row = QHBoxLayout()
        row.addStretch()
        row.addWidget(make_button("Cancel", font_family, 10, on_click=self.reject))
        row.addWidget(make_button("Save", font_family, 10, role="primary", on_click=self._apply))
        lay.addLayout(row)

    def _apply(self):
        name = self._name.text().strip()
        if not name:
            self._error.setText("Task name is required")
            self._error.setVisible(True)
            return
        self.chosen_name = name
        self.chosen_description = self._description.toPlainText().strip()
        self.accept()


class PendingTasksDialog(QDialog):

    def __init__(self, ctx, bridge, parent=None):
        super().__init__(parent)
        self.ctx = ctx
        self.bridge = bridge
        self.store = ctx.pending_tasks
        self.font_family = ctx.settings["font"]

        self.setWindowTitle("Pending tasks")
        self.setWindowFlags(self.windowFlags() | Qt.WindowStaysOnTopHint)
        self.setModal(True)
        self.setMinimumSize(560, 420)
        self.setStyleSheet(build_stylesheet(ctx.settings["theme"]))

        outer = QVBoxLayout(self)
        self._header = make_label("", self.font_family, 13, bold=True)
        outer.addWidget(self._header)
        outer.addWidget(make_label("Add a task for each project you tracked time on before continuing.",
                                   self.font_family, 10, role="muted"))

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
        self._skip_btn = make_button("Skip for now", self.font_family, 10, on_click=self._skip)
        self._continue_btn = make_button("Continue", self.font_family, 11, role="primary", on_click=self.accept)
        footer.addWidget(self._retry_btn)
        footer.addWidget(self._skip_btn)
        footer.addStretch()
        footer.addWidget(self._continue_btn)
        outer.addLayout(footer)

        bridge.store_changed.connect(self._on_store_changed)
        self._rebuild()

    def _on_store_changed(self, name):
        if name == "pending_tasks":
            self._rebuild()

    def _clear_list(self):
        while self._list.count():
            item = self._list.takeAt(0)
            if item.widget() is not None:
                item.widget().deleteLater()

    def _rebuild(self):
        self._clear_list()
        state = self.store.state

        if state == PendingState.LOADING:
            self._header.setText("Loading pending tasks...")
        elif state == PendingState.ERROR:
            self._header.setText("Couldn't load pending tasks")
            self._list.addWidget(make_label(self.store.error or "Unknown error", self.font_family, 10,
                                            role="error"))
        elif state == PendingState.LOADED:
            self._header.setText(f"{len(self.store.entries)} project(s) need a task")
            for entry in self.store.entries:
                self._list.addWidget(self._build_entry_card(entry))
        else:
            self._header.setText("All caught up")

        self._retry_btn.setVisible(state == PendingState.ERROR)
        self._skip_btn.setVisible(state == PendingState.ERROR and self.store.can_skip)
        self._continue_btn.setEnabled(not self.store.blocking)
        self._continue_btn.setText("Continue" if not self.store.blocking else "Complete all tasks to continue")

    def _build_entry_card(self, entry):
        card = QWidget()
        card.setObjectName("card")
        lay = QHBoxLayout(card)
        text = QVBoxLayout()
        text.addWidget(make_label(entry.project_name, self.font_family, 11, bold=True))
        text.addWidget(make_label(f"{entry.date_for_api}  {entry.formatted_time_range}  ({entry.formatted_duration})",
                                  self.font_family, 9, role="muted"))
        lay.addLayout(text, 1)
        lay.addWidget(make_button("Add task", self.font_family, 10, role="primary",
                                  on_click=lambda: self._add_task(entry)))
        return card

    def _add_task(self, entry):
        details = f"{entry.date_for_api}  {entry.formatted_time_range}  ({entry.formatted_duration})"
        dlg = AddTaskDialog(self, entry.project_name, details, self.font_family)
        if dlg.exec() != QDialog.Accepted:
            return
        self.bridge.run_in_background(self.store.submit_task, entry, dlg.chosen_name, dlg.chosen_description,
                                      on_done=lambda _: self._banner.show_message("Task added", "success"),
                                      on_error=lambda e: self._banner.show_message(str(e), "error"))

    def _retry(self):
        self._banner.clear_message()
        self.bridge.run_in_background(self.store.retry)

    def _skip(self):
        if self.store.skip():
            self.accept()

    # Escape and the close button are ignored while tasks are still owed.
    def reject(self):
        if self.store.blocking:
            self._banner.show_message("Please add tasks for all projects before continuing", "warning")
            return
        super().reject()

    def closeEvent(self, event):
        if self.store.blocking:
            event.ignore()
            self._banner.show_message("Please add tasks for all projects before continuing", "warning")
            return
        super().closeEvent(event)
