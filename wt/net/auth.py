"""Login, logout and token refresh.

``AuthService`` owns the stored user (via ``UserStore``) and keeps the socket
connection in step with it.  ``TokenRefreshCoordinator`` makes sure only one
refresh is ever in flight, however many API calls hit a 401 at once.
"""

import secrets
import threading
from wt.common.logger import log
from wt.core.models import User
from wt.core.otp import OTPError
from wt.net.api import ApiError
from wt.net.socket import SocketConnectionError
from wt.util import is_valid_email, now_local

MIN_PASSWORD_LENGTH = 6


class AuthError(Exception):
    """A login attempt was rejected, either locally (validation) or by the server."""


class AuthService:

    def __init__(self, api, user_store, socket=None, otp=None, mailer=None):
        self._api = api
        self._store = user_store
        self._socket = socket
        self._otp = otp
        self._mailer = mailer
        self._logout_listeners = []

    # ------------------------------------------------------------------ #
    #  Stored user                                                         #
    # ------------------------------------------------------------------ #

    def current_user(self):
        data = self._store.get()
        if not data:
            return None
        try:
            return User.from_json(data)
        except (KeyError, TypeError, ValueError):
            log.warning("Stored user record is unreadable, treating as logged out", exc_info=True)
            return None

    def current_token(self):
        user = self.current_user()
        return user.token if user else None

    def is_logged_in(self):
        return self.current_user() is not None

    def add_logout_listener(self, callback):
        self._logout_listeners.append(callback)

    def _set_user(self, user):
        self._store.save(user.to_json())

    def _connect_socket(self, user):
        if self._socket is None or not user.token:
            return
        try:
            self._socket.connect(user.token)
            log.info("Socket connected after login")
        except SocketConnectionError as e:
            # A dead push channel must not fail the login, reconciliation covers it on the next sync
            log.warning(f"Failed to connect socket after login: {e}")

    # ------------------------------------------------------------------ #
    #  Password login                                                      #
    # ------------------------------------------------------------------ #

    def login_with_password(self, email, password):
        email = email.strip()
        log.info(f"Logging in with email: {email}")

        if not is_valid_email(email):
            raise AuthError("Please enter a valid email address")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        try:
            data = self._api.post("/auth/login", json={"email": email, "password": password}, auth=False)
        except ApiError as e:
            log.info(f"Login failed for {email}: {e}")
            raise AuthError(str(e)) from e

        if not isinstance(data, dict) or data.get("success") is not True or "user" not in data:
            message = data.get("message") if isinstance(data, dict) else None
            log.info(f"Login failed for {email}: {message}")
            raise AuthError(message or "Login failed")

        user = User.from_login_response(data)
        self._set_user(user)
        log.info(f"Login successful for: {email}")
        self._connect_socket(user)
        return user

    # ------------------------------------------------------------------ #
    #  Email OTP login                                                     #
    # ------------------------------------------------------------------ #

    # Issues a code and mails it. An email that already has a code waiting goes through the resend path, so going
    # back and entering the same address again still honors the cooldown. OTPError (rate limited, cooling down) and
    # EmailError (delivery) propagate to the login screen.
    def send_otp(self, email, resend=False):
        email = email.strip()
        if not is_valid_email(email):
            raise AuthError("Please enter a valid email address")
        if self._otp is None or self._mailer is None:
            raise AuthError("Email login is not available")

        log.info(f"Sending OTP to: {email}")
        if resend or self._otp.has_pending_otp(email):
            code = self._otp.resend_otp(email)
        else:
            code = self._otp.generate_otp(email)
        self._mailer.send_otp_email(email, code)
        log.info(f"OTP sent successfully to: {email}")
        return True

    # Returns the logged-in User, or None for a wrong code. OTPError means the code is gone (expired or too many
    # attempts) and a new one must be requested.
    def verify_otp_and_login(self, email, code):
        email = email.strip()
        if self._otp is None:
            raise AuthError("Email login is not available")

        log.info(f"Verifying OTP for: {email}")
        if not self._otp.verify_otp(email, code):
            log.info(f"Invalid OTP for: {email}")
            return None

        now = now_local()
        user = User(
            id=str(int(now.timestamp() * 1000)),
            email=email.lower(),
            name=email.split("@")[0],
            token=secrets.token_hex(32),
            created_at=now,
            last_login_at=now,
        )
        self._set_user(user)
        log.info(f"Login successful for: {email}")
        self._connect_socket(user)
        return user

    # ------------------------------------------------------------------ #
    #  Refresh and logout                                                  #
    # ------------------------------------------------------------------ #

    # Exchanges the stored refresh token for a new access token. Returns False when there's nothing to refresh or
    # the server rejects it; network errors raise ApiError.
    def refresh_access_token(self):
        user = self.current_user()
        if user is None or not user.refresh_token:
            log.warning("Token refresh requested but no refresh token is stored")
            return False

        data = self._api.post("/auth/refresh", json={"refreshToken": user.refresh_token}, auth=False)
        token = data.get("accessToken") if isinstance(data, dict) else None
        if not token:
            log.warning("Token refresh response did not contain an access token")
            return False

        self._set_user(user.with_tokens(token, data.get("refreshToken")))
        log.info("Access token refreshed")
        return True

    def logout(self):
        log.info("Logging out user")

        if self._socket is not None:
            self._socket.disconnect()
            log.info("Socket disconnected on logout")

        user = self.current_user()
        if user is not None and user.token and user.refresh_token:
            try:
                self._api.post("/auth/logout", json={"refreshToken": user.refresh_token},
                               retry_on_401=False, notify_auth_failure=False)
                log.info("API logout successful")
            except ApiError as e:
                log.warning(f"API logout failed, clearing local data anyway: {e}")

        # Always clear local user data
        self._store.clear()
        for callback in list(self._logout_listeners):
            callback()
        log.info("Logout successful")

    # Local-only logout, used when the session can't be recovered (refresh failed). Several requests can fail
    # together, only the first one logs out.
    def force_logout(self):
        if self.current_user() is None:
            log.info("Force logout requested but no user is logged in, ignoring")
            return
        log.warning("Force logout triggered")
        if self._socket is not None:
            self._socket.disconnect()
        self._store.clear()
        for callback in list(self._logout_listeners):
            callback()


class _RefreshAttempt:

    def __init__(self):
        self.done = threading.Event()
        self.result = False


class TokenRefreshCoordinator:
    """Serializes token refreshes between the API worker threads and the socket."""

    def __init__(self, auth):
        self._auth = auth
        self._lock = threading.Lock()
        self._current = None
        self._listeners = []

    @property
    def is_refreshing(self):
        return self._current is not None

    # Called with the new access token after every successful refresh (the socket reconnects with it).
    def add_refresh_listener(self, callback):
        self._listeners.append(callback)

    def refresh_token(self):
        with self._lock:
            attempt = self._current
            owner = attempt is None
            if owner:
                attempt = self._current = _RefreshAttempt()

        if not owner:
            log.info("Token refresh already in progress, waiting...")
            attempt.done.wait()
            return attempt.result

        try:
            log.info("Starting coordinated token refresh...")
            attempt.result = self._auth.refresh_access_token()
        except (ApiError, AuthError, OTPError):
            log.exception("Token refresh failed with exception")
            attempt.result = False
        finally:
            with self._lock:
                self._current = None
            attempt.done.set()

        if attempt.result:
            log.info("Token refresh successful, notifying listeners...")
            token = self._auth.current_token()
            for callback in list(self._listeners):
                callback(token)
        else:
            log.warning("Token refresh returned false")
        return attempt.result

    def force_logout(self):
        log.warning("Force logout triggered via coordinator")
        self._auth.force_logout()
