from PySide6.QtCore import Qt
from PySide6.QtGui import QIcon
from PySide6.QtWidgets import QHBoxLayout, QMainWindow, QMessageBox, QScrollArea, QVBoxLayout, QWidget
from wt.common.logger import log
from wt.common.setup import PATHS
from wt.core.attendance import AttendanceState
from wt.core.models import AttendanceDay
from wt.core.tasks import PendingState
from wt.ui.dialogs.multi_project_tasks import MultiProjectTaskDialog
from wt.ui.dialogs.pending_tasks import PendingTasksDialog
from wt.ui.theme import build_stylesheet
from wt.ui.widgets import MessageBanner, build_project_row, make_button, make_label
from wt.util import format_hms, format_short

# Full window: project list with start/stop, today's totals, attendance and pending tasks. Closing it only hides it,
# the floating widget keeps the app alive.
class DashboardWindow(QMainWindow):

    def __init__(self, ctx, bridge):
        super().__init__()
        self.ctx = ctx
        self.bridge = bridge
        self.setWindowTitle("WorkTracker")
        self.setWindowIcon(QIcon(str(PATHS.assets / "icon.ico")))
        geometry = ctx.settings.get("dashboard_geometry")
        if isinstance(geometry, list) and len(geometry) == 4:
            self.setGeometry(*geometry)
        else:
            self.resize(520, 640)

        s = ctx.settings
        self.theme = s["theme"]
        self.font_family = s["font"]
        self.setStyleSheet(build_stylesheet(self.theme))

        self._rows = {}                 # project id -> widget dict
        self._row_running_id = None     # project id the rows were built for

        central = QWidget()
        self.setCentralWidget(central)
        self._main_lay = QVBoxLayout(central)
        self._main_lay.setContentsMargins(14, 14, 14, 14)
        self._main_lay.setSpacing(10)

        self._build_header()
        self._banner = MessageBanner(self.theme)
        self._main_lay.addWidget(self._banner)
        self._build_summary()
        self._build_attendance()
        self._build_project_list()

        bridge.store_changed.connect(self._on_store_changed)
        bridge.socket_state_changed.connect(self._on_socket_state)
        self._rebuild_rows()
        self._update_session()
        self._update_attendance()
        self._update_pending()

    # ------------------------------------------------------------------ #
    #  Layout                                                              #
    # ------------------------------------------------------------------ #

    def _build_header(self):
        row = QHBoxLayout()
        user = self.ctx.auth.current_user()
        col = QVBoxLayout()
        col.addWidget(make_label(user.name if user else "", self.font_family, 14, bold=True))
        self._user_lbl = make_label(user.email if user else "", self.font_family, 9, role="muted")
        col.addWidget(self._user_lbl)
        row.addLayout(col, 1)

        self._socket_lbl = make_label("", self.font_family, 9, role="muted")
        self._on_socket_state(self.ctx.socket.is_connected)
        row.addWidget(self._socket_lbl)
        row.addWidget(make_button("Refresh", self.font_family, 10, on_click=self.refresh))
        row.addWidget(make_button("Log out", self.font_family, 10, on_click=self._logout))
        self._main_lay.addLayout(row)

    def _build_summary(self):
        card = QWidget()
        card.setObjectName("card")
        lay = QHBoxLayout(card)
        col = QVBoxLayout()
        self._current_lbl = make_label("No active project", self.font_family, 11, bold=True)
        self._total_lbl = make_label("", self.font_family, 9, role="muted")
        col.addWidget(self._current_lbl)
        col.addWidget(self._total_lbl)
        lay.addLayout(col, 1)
        self._timer_lbl = make_label(format_hms(0), self.font_family, 18, bold=True, role="timer")
        lay.addWidget(self._timer_lbl)
        self._main_lay.addWidget(card)

    def _build_attendance(self):
        card = QWidget()
        card.setObjectName("card")
        lay = QHBoxLayout(card)
        self._attendance_lbl = make_label("Attendance: not loaded", self.font_family, 10)
        lay.addWidget(self._attendance_lbl, 1)
        self._pending_btn = make_button("Pending tasks", self.font_family, 10, on_click=self.show_pending_tasks)
        lay.addWidget(self._pending_btn)
        self._attendance_btn = make_button("Check in", self.font_family, 10, role="primary",
                                           on_click=self._record_attendance)
        lay.addWidget(self._attendance_btn)
        self._main_lay.addWidget(card)

    def _build_project_list(self):
        self._main_lay.addWidget(make_label("Projects", self.font_family, 12, bold=True))
        self._grid_widget = QWidget()
        self._grid = QVBoxLayout(self._grid_widget)
        self._grid.setContentsMargins(0, 0, 0, 0)
        self._grid.setAlignment(Qt.AlignTop)
        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setWidget(self._grid_widget)
        self._main_lay.addWidget(scroll, 1)

    def _rebuild_rows(self):
        while self._grid.count():
            item = self._grid.takeAt(0)
            if item.widget() is not None:
                item.widget().deleteLater()
        self._rows = {}

        session = self.ctx.session
        running_id = session.session.project_id if session.is_running else None
        self._row_running_id = running_id

        projects = self.ctx.projects.active_projects()
        if not projects:
            text = self.ctx.projects.error or ("Loading projects..." if self.ctx.projects.loading
                                               else "No active projects")
            self._grid.addWidget(make_label(text, self.font_family, 10, role="muted"))
            return

        for project in projects:
            completed = session.completed_for(project.id).total_seconds()
            container, widgets = build_project_row(self.font_family, project, completed,
                                                   project.id == running_id, self._toggle_project)
            self._grid.addWidget(container)
            self._rows[project.id] = widgets

    # ------------------------------------------------------------------ #
    #  Store updates                                                       #
    # ------------------------------------------------------------------ #

    def _on_store_changed(self, name):
        if name == "session":
            self._update_session()
        elif name == "projects":
            self._rebuild_rows()
        elif name == "attendance":
            self._update_attendance()
        elif name == "pending_tasks":
            self._update_pending()

    def _on_socket_state(self, connected):
        self._socket_lbl.setText("Live" if connected else "Offline")
        self._socket_lbl.setToolTip("Receiving live timer updates" if connected
                                    else "Not connected, timers sync on refresh")

    def _update_session(self):
        session = self.ctx.session
        running_id = session.session.project_id if session.is_running else None
        if running_id != self._row_running_id:
            self._rebuild_rows()

        if session.is_running:
            self._current_lbl.setText(session.session.project_name)
            self._timer_lbl.setText(format_hms(session.current_duration))
            widgets = self._rows.get(running_id)
            if widgets is not None:
                widgets["time"].setText(format_hms(session.current_duration))
        else:
            self._current_lbl.setText("No active project")
            self._timer_lbl.setText(format_hms(0))
        self._total_lbl.setText(f"Today: {format_short(session.session_total.total_seconds())}")

        for project_id, widgets in self._rows.items():
            widgets["today"].setText(format_short(session.completed_for(project_id).total_seconds()))

    def _update_attendance(self):
        store = self.ctx.attendance
        day = store.day
        if store.state == AttendanceState.LOADING:
            text = "Attendance: loading..."
        elif store.state == AttendanceState.ERROR:
            text = f"Attendance: {store.error}"
        elif store.has_checked_out:
            text = (f"Checked in {AttendanceDay.format_clock(day.check_in_time)}, "
                    f"out {AttendanceDay.format_clock(day.check_out_time)} ({day.formatted_total})")
        elif store.has_checked_in:
            text = f"Checked in at {AttendanceDay.format_clock(day.check_in_time)}"
        else:
            text = "Not checked in today"
        self._attendance_lbl.setText(text)

        self._attendance_btn.setText("Check out" if store.has_checked_in else "Check in")
        self._attendance_btn.setEnabled(not store.busy)
        if store.state == AttendanceState.RECORD_ERROR:
            self._banner.show_message(store.error or "Failed to record attendance", "error")

    def _update_pending(self):
        store = self.ctx.pending_tasks
        count = len(store.entries) if store.state == PendingState.LOADED else 0
        self._pending_btn.setText(f"Pending tasks ({count})" if count else "Pending tasks")

    # ------------------------------------------------------------------ #
    #  Actions                                                             #
    # ------------------------------------------------------------------ #

    def refresh(self):
        self._banner.clear_message()
        self.bridge.run_in_background(self.ctx.projects.refresh_projects)
        self.bridge.run_in_background(self.ctx.session.sync_from_server)
        self.bridge.run_in_background(self.ctx.attendance.load_today)

    def _toggle_project(self, project):
        session = self.ctx.session
        if session.is_running and session.session.project_id == project.id:
            action, args = session.stop_timer, ()
        elif session.is_running:
            if not MultiProjectTaskDialog.show_for_project_switch(self.ctx, self.bridge, self):
                log.info(f"Switch to {project.name} cancelled at the task check")
                return
            action, args = session.switch_project, (project,)
        else:
            action, args = session.start_timer, (project,)
        self.bridge.run_in_background(action, *args, on_error=self._show_error)

    def _record_attendance(self):
        # Checking out needs a task for every project worked on today
        if self.ctx.attendance.has_checked_in and not MultiProjectTaskDialog.show_for_checkout(
                self.ctx, self.bridge, self):
            log.info("Check-out cancelled at the task check")
            return
        self._attendance_btn.setEnabled(False)
        self.bridge.run_in_background(self.ctx.attendance.record_biometric)

    def show_pending_tasks(self):
        store = self.ctx.pending_tasks
        if store.state in (PendingState.INITIAL, PendingState.SKIPPED, PendingState.COMPLETED):
            self.bridge.run_in_background(store.load)
        PendingTasksDialog(self.ctx, self.bridge, self).exec()

    def _show_error(self, error):
        self._banner.show_message(str(error), "error")

    def _logout(self):
        answer = QMessageBox.question(self, "Log out", "Log out of WorkTracker?")
        if answer != QMessageBox.Yes:
            return
        if self.ctx.session.is_running:
            log.info("Logging out with a running timer, it keeps running on the server")
        # The auth logout listeners take it from here (stores cleared, login shown again)
        self.bridge.run_in_background(self.ctx.auth.logout, on_error=self._show_error)

    # ------------------------------------------------------------------ #
    #  Window close                                                        #
    # ------------------------------------------------------------------ #

    def closeEvent(self, event):
        try:
            self.ctx.save_settings(dashboard_geometry=[self.x(), self.y(), self.width(), self.height()])
        except OSError as e:
            QMessageBox.warning(self, "Save Error", f"Failed to save settings:\n{e}")
        self.hide()
        event.ignore()
