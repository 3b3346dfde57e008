from wt.common.logger import log
from wt.core import config
from wt.core.attendance import AttendanceStore
from wt.core.otp import OTPService
from wt.core.projects import ProjectStore
from wt.core.session import SessionStore
from wt.core.tasks import PendingTasksStore, ProjectTasksStore, TaskDurations
from wt.net.api import ApiClient
from wt.net.auth import AuthService, TokenRefreshCoordinator
from wt.net.email import EmailService
from wt.net.socket import SocketConnectionError, SocketService

# Builds and wires every service and store the app needs. The UI passes its Qt bridge as `events` (push events
# delivered on the GUI thread) and `background` (runs follow-up work on the thread pool); without them, events come
# straight from the socket and follow-ups run inline, which is what the tests use.
class AppContext:

    def __init__(self, state=None, http_session=None, socket_client_factory=None, events=None, background=None):
        self.state = state if state is not None else config.load_state()
        self.settings = config.effective_settings(self.state["settings"])
        self.user_store = config.UserStore(self.state)

        self.socket = SocketService(self.settings["socket_url"], client_factory=socket_client_factory)
        self.otp = OTPService()
        self.mailer = EmailService()
        self.api = ApiClient(
            self.settings["api_url"],
            token_provider=lambda: self.auth.current_token(),
            timeout=self.settings["request_timeout"],
            session=http_session,
        )
        self.auth = AuthService(self.api, self.user_store, socket=self.socket, otp=self.otp, mailer=self.mailer)

        # The refresher needs the auth service, which needs the api client, so the 401 hooks go in last
        self.token_refresh = TokenRefreshCoordinator(self.auth)
        self.api.refresher = self.token_refresh.refresh_token
        self.api.on_auth_failure = self.token_refresh.force_logout
        self.token_refresh.add_refresh_listener(self.socket.reconnect)

        self.projects = ProjectStore(self.api)
        self.project_tasks = ProjectTasksStore(self.api)
        self.task_durations = TaskDurations()
        self.pending_tasks = PendingTasksStore(self.api, self.project_tasks)
        self.attendance = AttendanceStore(self.api)
        self.session = SessionStore(
            self.api,
            self.projects,
            events=events if events is not None else self.socket,
            task_durations=self.task_durations,
            background=background,
        )

        self.auth.add_logout_listener(self.clear_stores)
        log.info(f"App context ready (api: {self.settings['api_url']}, socket: {self.settings['socket_url']})")

    @property
    def auth_mode(self):
        return self.settings.get("auth_mode", "password")

    # Reconnects the push channel for a user restored from state.json. Failure only means no live updates until the
    # next successful connect.
    def resume_socket(self):
        token = self.auth.current_token()
        if not token:
            return False
        if self.token_refresh.is_refreshing:
            # The refresh listener reconnects with the new token
            log.info("Token refresh in progress, leaving the socket to reconnect after it")
            return False
        try:
            self.socket.connect(token)
        except SocketConnectionError as e:
            log.warning(f"Could not connect socket for restored session: {e}")
            return False
        return True

    def clear_stores(self):
        log.info("Clearing local stores")
        self.session.clear()
        self.projects.clear()
        self.project_tasks.clear()
        self.task_durations.clear()
        self.pending_tasks.clear()
        self.attendance.clear()
        self.otp.clear_all()

    def save_settings(self, **changes):
        self.state["settings"].update(changes)
        self.settings = config.effective_settings(self.state["settings"])
        config.save_state(self.state)
