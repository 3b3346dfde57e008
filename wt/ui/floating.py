from PySide6.QtCore import QPoint, Qt, QTimer
from PySide6.QtGui import QGuiApplication
from PySide6.QtWidgets import QComboBox, QHBoxLayout, QMessageBox, QVBoxLayout, QWidget
from wt.common.logger import log
from wt.ui.dialogs.multi_project_tasks import MultiProjectTaskDialog
from wt.ui.theme import build_stylesheet
from wt.ui.widgets import MessageBanner, make_button, make_label
from wt.util import format_hms, format_short

EXPANDED_WIDTH = 280
PEEK_WIDTH = 14
COLLAPSE_DELAY_MS = 600

# Small frameless always-on-top widget docked to the right edge of the screen. Only a thin strip shows until the
# mouse hovers it, then it slides out to show the running project and its live timer.
class FloatingWidget(QWidget):

    def __init__(self, ctx, bridge, on_open_dashboard, on_quit):
        super().__init__()
        self.ctx = ctx
        self.bridge = bridge
        self._on_open_dashboard = on_open_dashboard
        self._on_quit = on_quit
        self._expanded = False
        self._drag_origin = None
        self._populating = False

        s = ctx.settings
        self.theme = s["theme"]
        self.font_family = s["font"]

        flags = Qt.FramelessWindowHint | Qt.Tool
        if s.get("always_on_top", True):
            flags |= Qt.WindowStaysOnTopHint
        self.setWindowFlags(flags)
        self.setAttribute(Qt.WA_ShowWithoutActivating)
        self.setStyleSheet(build_stylesheet(self.theme))
        self.setFixedWidth(EXPANDED_WIDTH)

        self._collapse_timer = QTimer(self)
        self._collapse_timer.setSingleShot(True)
        self._collapse_timer.timeout.connect(self.collapse)

        self._build_ui()

        bridge.store_changed.connect(self._on_store_changed)
        self._refresh_projects()
        self._refresh_session()
        QTimer.singleShot(0, self._dock)

    # ------------------------------------------------------------------ #
    #  Layout                                                              #
    # ------------------------------------------------------------------ #

    def _build_ui(self):
        lay = QVBoxLayout(self)
        lay.setContentsMargins(PEEK_WIDTH + 6, 8, 8, 8)
        lay.setSpacing(6)

        top = QHBoxLayout()
        self._project_lbl = make_label("No active project", self.font_family, 10, bold=True)
        self._time_lbl = make_label(format_hms(0), self.font_family, 12, bold=True, role="timer")
        top.addWidget(self._project_lbl, 1)
        top.addWidget(self._time_lbl)
        lay.addLayout(top)

        self._total_lbl = make_label("Today: < 1m", self.font_family, 9, role="muted")
        lay.addWidget(self._total_lbl)

        self._projects = QComboBox()
        self._projects.setToolTip("Select a project to start (or switch) its timer")
        self._projects.activated.connect(self._on_project_chosen)
        lay.addWidget(self._projects)

        buttons = QHBoxLayout()
        self._stop_btn = make_button("Stop", self.font_family, 9, role="danger", on_click=self._stop)
        buttons.addWidget(self._stop_btn)
        buttons.addWidget(make_button("Dashboard", self.font_family, 9, on_click=self._on_open_dashboard))
        buttons.addWidget(make_button("Quit", self.font_family, 9, on_click=self._on_quit))
        lay.addLayout(buttons)

        self._banner = MessageBanner(self.theme)
        lay.addWidget(self._banner)

    def _screen_geometry(self):
        screen = self.screen() or QGuiApplication.primaryScreen()
        return screen.availableGeometry()

    # Places the widget against the right screen edge at the saved height, collapsed.
    def _dock(self):
        self.adjustSize()
        geo = self._screen_geometry()
        y = self.ctx.settings.get("widget_y") or 300
        y = max(geo.top(), min(int(y), geo.bottom() - self.height()))
        self._expanded = True
        self.move(geo.right() - self.width() + 1, y)
        self.collapse()

    def expand(self):
        self._collapse_timer.stop()
        if self._expanded:
            return
        geo = self._screen_geometry()
        self.move(geo.right() - self.width() + 1, self.y())
        self._expanded = True

    def collapse(self):
        if not self._expanded or self._projects.view().isVisible():
            return
        geo = self._screen_geometry()
        self.move(geo.right() - PEEK_WIDTH + 1, self.y())
        self._expanded = False

    # ------------------------------------------------------------------ #
    #  Store updates                                                       #
    # ------------------------------------------------------------------ #

    def _on_store_changed(self, name):
        if name == "session":
            self._refresh_session()
        elif name == "projects":
            self._refresh_projects()

    def _refresh_session(self):
        session = self.ctx.session
        if session.is_running:
            self._project_lbl.setText(session.session.project_name)
            self._time_lbl.setText(format_hms(session.current_duration))
        else:
            self._project_lbl.setText("No active project")
            self._time_lbl.setText(format_hms(0))
        self._stop_btn.setEnabled(session.is_running)
        self._total_lbl.setText(f"Today: {format_short(session.session_total.total_seconds())}")

    def _refresh_projects(self):
        self._populating = True
        self._projects.clear()
        self._projects.addItem("Select a project...", None)
        for project in self.ctx.projects.active_projects():
            completed = self.ctx.session.completed_for(project.id).total_seconds()
            self._projects.addItem(f"{project.name}  ({format_short(completed)})", project.id)
        selected = self.ctx.projects.selected
        index = self._projects.findData(selected.id) if selected is not None else 0
        self._projects.setCurrentIndex(max(index, 0))
        self._populating = False

    # ------------------------------------------------------------------ #
    #  Actions                                                             #
    # ------------------------------------------------------------------ #

    def _on_project_chosen(self, index):
        if self._populating:
            return
        project = self.ctx.projects.get_project(self._projects.itemData(index))
        if project is None:
            return
        session = self.ctx.session
        if session.is_running and session.session.project_id == project.id:
            return
        if session.is_running and not MultiProjectTaskDialog.show_for_project_switch(self.ctx, self.bridge, self):
            log.info(f"Floating widget: switch to {project.name} cancelled at the task check")
            self._refresh_projects()
            return
        action = session.switch_project if session.is_running else session.start_timer
        log.info(f"Floating widget: starting {project.name}")
        self.bridge.run_in_background(action, project, on_error=self._show_error)

    def _stop(self):
        if not self.ctx.session.is_running:
            return
        if self.ctx.settings.get("confirm_stop", False):
            answer = QMessageBox.question(self, "Stop timer",
                                          f"Stop tracking {self.ctx.session.session.project_name}?")
            if answer != QMessageBox.Yes:
                return
        self.bridge.run_in_background(self.ctx.session.stop_timer, on_error=self._show_error)

    def _show_error(self, error):
        self.expand()
        self._banner.show_message(str(error), "error")
        self._refresh_projects()

    # ------------------------------------------------------------------ #
    #  Mouse                                                               #
    # ------------------------------------------------------------------ #

    def enterEvent(self, event):
        self.expand()
        super().enterEvent(event)

    def leaveEvent(self, event):
        self._collapse_timer.start(COLLAPSE_DELAY_MS)
        super().leaveEvent(event)

    # Vertical drag along the screen edge; the new height is saved on release.
    def mousePressEvent(self, event):
        if event.button() == Qt.LeftButton:
            self._drag_origin = event.globalPosition().toPoint() - self.frameGeometry().topLeft()
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event):
        if self._drag_origin is not None and event.buttons() & Qt.LeftButton:
            pos = event.globalPosition().toPoint() - self._drag_origin
            self.move(QPoint(self.x(), pos.y()))
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event):
        if self._drag_origin is not None:
            self._drag_origin = None
            try:
                self.ctx.save_settings(widget_y=self.y())
            except OSError as e:
                log.warning(f"Could not save widget position: {e}")
        super().mouseReleaseEvent(event)
