import sys
from PySide6.QtCore import QObject, QTimer
from PySide6.QtGui import QFont
from PySide6.QtWidgets import QApplication, QDialog
from wt.common.logger import log
from wt.context import AppContext
from wt.core.tasks import PendingState
from wt.ui.bridge import QtBridge
from wt.ui.dashboard import DashboardWindow
from wt.ui.dialogs.pending_tasks import PendingTasksDialog
from wt.ui.floating import FloatingWidget
from wt.ui.login import LoginDialog
from wt.ui.theme import build_stylesheet

# Owns the windows and moves between the logged out (login dialog) and logged in (floating widget + dashboard)
# states. All store mutation it triggers runs through the bridge's thread pool.
class AppController(QObject):

    def __init__(self, app):
        super().__init__()
        self.app = app
        self.bridge = QtBridge(self)
        self.ctx = AppContext(events=self.bridge, background=self.bridge.background)
        self.bridge.attach_socket(self.ctx.socket)

        for store, name in ((self.ctx.session, "session"),
                            (self.ctx.projects, "projects"),
                            (self.ctx.attendance, "attendance"),
                            (self.ctx.pending_tasks, "pending_tasks")):
            self.bridge.watch(store, name)

        # Logout can come from a worker thread (a failed token refresh), so it goes through a queued signal
        self.ctx.auth.add_logout_listener(self.bridge.logged_out.emit)
        self.bridge.logged_out.connect(self._on_logged_out)

        self.floating = None
        self.dashboard = None

        # -- Tick timer (1 s) --
        self._timer = QTimer(self)
        self._timer.timeout.connect(self.ctx.session.tick)

        app.setStyleSheet(build_stylesheet(self.ctx.settings["theme"]))
        app.setFont(QFont(self.ctx.settings["font"], 10))

    def start(self):
        if self.ctx.auth.is_logged_in():
            log.info(f"Restored login for {self.ctx.auth.current_user()}")
            self.bridge.run_in_background(self.ctx.resume_socket)
            self._enter_logged_in()
        else:
            self._show_login()

    # ------------------------------------------------------------------ #
    #  Logged out                                                          #
    # ------------------------------------------------------------------ #

    def _show_login(self):
        dlg = LoginDialog(self.ctx, self.bridge)
        if dlg.exec() != QDialog.Accepted or dlg.user is None:
            log.info("Login dialog closed without logging in, exiting")
            self.quit()
            return
        self._enter_logged_in()

    def _on_logged_out(self):
        log.info("Logged out, returning to login")
        self._timer.stop()
        for window in (self.floating, self.dashboard):
            if window is not None:
                window.hide()
                window.deleteLater()
        self.floating = None
        self.dashboard = None
        QTimer.singleShot(0, self._show_login)

    # ------------------------------------------------------------------ #
    #  Logged in                                                           #
    # ------------------------------------------------------------------ #

    def _enter_logged_in(self):
        self.floating = FloatingWidget(self.ctx, self.bridge, on_open_dashboard=self.show_dashboard,
                                       on_quit=self.quit)
        self.floating.show()
        self._timer.start(1000)

        # Projects first, so reconciliation can resolve the running project's name
        self.bridge.run_in_background(self._initial_load, on_done=lambda _: self._check_pending_tasks())

    def _initial_load(self):
        self.ctx.projects.load_projects()
        self.ctx.session.sync_from_server()
        self.ctx.attendance.load_today()
        self.ctx.pending_tasks.load()

    def _check_pending_tasks(self):
        if self.ctx.pending_tasks.state in (PendingState.LOADED, PendingState.ERROR):
            log.info("Pending task reports found, showing dialog")
            PendingTasksDialog(self.ctx, self.bridge, self.dashboard).exec()

    def show_dashboard(self):
        if self.dashboard is None:
            self.dashboard = DashboardWindow(self.ctx, self.bridge)
        self.dashboard.show()
        self.dashboard.raise_()
        self.dashboard.activateWindow()

    def quit(self):
        log.info("Shutting down")
        self._timer.stop()
        self.ctx.session.dispose()
        self.ctx.socket.disconnect()
        self.bridge.wait_for_done(2000)
        self.app.quit()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    app = QApplication(sys.argv)
    app.setApplicationName("WorkTracker")
    app.setQuitOnLastWindowClosed(False)
    controller = AppController(app)
    QTimer.singleShot(0, controller.start)
    sys.exit(app.exec())
