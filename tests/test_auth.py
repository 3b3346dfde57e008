"""Tests for login/logout and the single-flight token refresh."""

import threading
import time
import unittest
from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

from socketio.exceptions import ConnectionError as SocketConnectionError

from wt.core import config
from wt.core.otp import OTPError, OTPService
from wt.net.api import ApiError
from wt.net.auth import AuthError, AuthService, TokenRefreshCoordinator, _RefreshAttempt

LOGIN_RESPONSE = {
    "success": True,
    "accessToken": "access-1",
    "refreshToken": "refresh-1",
    "user": {"id": "u1", "email": "jane@example.com", "role": "engineer"},
}


class MemoryUserStore:
    """UserStore stand-in that never touches disk."""

    def __init__(self, user=None):
        self.user = user

    def get(self):
        return self.user

    def save(self, user_dict):
        self.user = user_dict

    def clear(self):
        self.user = None


class AuthTestCase(unittest.TestCase):

    def setUp(self):
        self.api = MagicMock()
        self.store = MemoryUserStore()
        self.socket = MagicMock()
        self.auth = AuthService(self.api, self.store, socket=self.socket)

    def log_in(self):
        self.api.post.return_value = LOGIN_RESPONSE
        return self.auth.login_with_password("jane@example.com", "secret1")


# ──────────────────────────────────────────────────────────────────────────
# Password login
# ──────────────────────────────────────────────────────────────────────────

class TestPasswordLogin(AuthTestCase):

    def test_success_stores_user_and_connects_socket(self):
        user = self.log_in()
        self.assertEqual(user.email, "jane@example.com")
        self.assertEqual(self.auth.current_token(), "access-1")
        self.assertTrue(self.auth.is_logged_in())
        self.socket.connect.assert_called_once_with("access-1")
        args, kwargs = self.api.post.call_args
        self.assertEqual(args, ("/auth/login",))
        self.assertFalse(kwargs["auth"])

    def test_email_is_trimmed(self):
        self.api.post.return_value = LOGIN_RESPONSE
        self.auth.login_with_password("  jane@example.com ", "secret1")
        self.assertEqual(self.api.post.call_args.kwargs["json"]["email"], "jane@example.com")

    def test_invalid_email_rejected_locally(self):
        with self.assertRaises(AuthError) as ctx:
            self.auth.login_with_password("not-an-email", "secret1")
        self.assertIn("valid email", str(ctx.exception))
        self.api.post.assert_not_called()

    def test_short_password_rejected_locally(self):
        with self.assertRaises(AuthError) as ctx:
            self.auth.login_with_password("jane@example.com", "12345")
        self.assertIn("at least 6", str(ctx.exception))
        self.api.post.assert_not_called()

    def test_server_rejection(self):
        self.api.post.return_value = {"success": False, "message": "Invalid email or password"}
        with self.assertRaises(AuthError) as ctx:
            self.auth.login_with_password("jane@example.com", "secret1")
        self.assertEqual(str(ctx.exception), "Invalid email or password")
        self.assertFalse(self.auth.is_logged_in())

    def test_api_error_becomes_auth_error(self):
        self.api.post.side_effect = ApiError("Network error. Please check your internet connection.")
        with self.assertRaises(AuthError) as ctx:
            self.auth.login_with_password("jane@example.com", "secret1")
        self.assertIn("Network error", str(ctx.exception))

    def test_socket_failure_does_not_fail_login(self):
        self.socket.connect.side_effect = SocketConnectionError("refused")
        user = self.log_in()
        self.assertIsNotNone(user)
        self.assertTrue(self.auth.is_logged_in())


# ──────────────────────────────────────────────────────────────────────────
# OTP login
# ──────────────────────────────────────────────────────────────────────────

class TestOtpLogin(unittest.TestCase):

    def setUp(self):
        self.store = MemoryUserStore()
        self.otp = OTPService()
        self.mailer = MagicMock()
        self.auth = AuthService(MagicMock(), self.store, otp=self.otp, mailer=self.mailer)

    def test_send_then_verify(self):
        self.auth.send_otp(" Jane@Example.com ")
        to, code = self.mailer.send_otp_email.call_args.args
        self.assertEqual(to, "Jane@Example.com")

        user = self.auth.verify_otp_and_login("Jane@Example.com", code)
        self.assertEqual(user.email, "jane@example.com")
        self.assertEqual(len(user.token), 64)
        self.assertTrue(self.auth.is_logged_in())

    def test_wrong_code_returns_none(self):
        self.auth.send_otp("jane@example.com")
        _, code = self.mailer.send_otp_email.call_args.args
        wrong = "000000" if code != "000000" else "111111"
        self.assertIsNone(self.auth.verify_otp_and_login("jane@example.com", wrong))
        self.assertFalse(self.auth.is_logged_in())

    def test_invalid_email_not_sent(self):
        with self.assertRaises(AuthError):
            self.auth.send_otp("bad")
        self.mailer.send_otp_email.assert_not_called()

    def test_unavailable_without_mailer(self):
        auth = AuthService(MagicMock(), MemoryUserStore())
        with self.assertRaises(AuthError):
            auth.send_otp("jane@example.com")

    def test_sending_again_to_same_email_honors_cooldown(self):
        now = datetime(2026, 3, 2, 9, 0, 0)
        auth = AuthService(MagicMock(), self.store, otp=OTPService(clock=lambda: now), mailer=self.mailer)
        auth.send_otp("jane@example.com")

        with self.assertRaises(OTPError) as ctx:
            auth.send_otp(" Jane@Example.com ")
        self.assertIn("60 seconds", str(ctx.exception))
        self.assertEqual(self.mailer.send_otp_email.call_count, 1)

        now += timedelta(seconds=61)
        auth.send_otp("jane@example.com")
        self.assertEqual(self.mailer.send_otp_email.call_count, 2)

    def test_other_email_is_not_held_by_cooldown(self):
        self.auth.send_otp("jane@example.com")
        self.auth.send_otp("john@example.com")
        self.assertEqual(self.mailer.send_otp_email.call_count, 2)


# ──────────────────────────────────────────────────────────────────────────
# Refresh and logout
# ──────────────────────────────────────────────────────────────────────────

class TestRefreshAndLogout(AuthTestCase):

    def test_refresh_rotates_tokens(self):
        self.log_in()
        self.api.post.return_value = {"accessToken": "access-2", "refreshToken": "refresh-2"}
        self.assertTrue(self.auth.refresh_access_token())
        self.assertEqual(self.auth.current_token(), "access-2")
        self.assertEqual(self.store.user["refreshToken"], "refresh-2")
        self.assertEqual(self.api.post.call_args.kwargs["json"], {"refreshToken": "refresh-1"})

    def test_refresh_without_stored_token(self):
        self.assertFalse(self.auth.refresh_access_token())
        self.api.post.assert_not_called()

    def test_refresh_without_access_token_in_response(self):
        self.log_in()
        self.api.post.return_value = {"success": False}
        self.assertFalse(self.auth.refresh_access_token())
        self.assertEqual(self.auth.current_token(), "access-1")

    def test_logout_clears_even_when_server_fails(self):
        self.log_in()
        listener = MagicMock()
        self.auth.add_logout_listener(listener)
        self.api.post.side_effect = ApiError("Server unavailable", 503)

        self.auth.logout()
        self.assertFalse(self.auth.is_logged_in())
        self.socket.disconnect.assert_called_once_with()
        listener.assert_called_once_with()
        self.assertFalse(self.api.post.call_args.kwargs["retry_on_401"])
        self.assertFalse(self.api.post.call_args.kwargs["notify_auth_failure"])

    def test_force_logout_skips_server(self):
        self.log_in()
        self.api.post.reset_mock()
        listener = MagicMock()
        self.auth.add_logout_listener(listener)
        self.auth.force_logout()
        self.assertFalse(self.auth.is_logged_in())
        self.api.post.assert_not_called()
        listener.assert_called_once_with()

    def test_force_logout_twice_notifies_once(self):
        self.log_in()
        listener = MagicMock()
        self.auth.add_logout_listener(listener)
        self.auth.force_logout()
        self.auth.force_logout()
        listener.assert_called_once_with()
        self.socket.disconnect.assert_called_once_with()

    def test_unreadable_stored_user_is_logged_out(self):
        self.store.user = {"email": "missing-id@example.com"}
        self.assertIsNone(self.auth.current_user())

    def test_with_real_user_store_on_disk(self):
        """UserStore round trip through state.json keeps the login."""
        store = config.UserStore(config.build_default_state())
        self.api.post.return_value = LOGIN_RESPONSE
        auth = AuthService(self.api, store)
        auth.login_with_password("jane@example.com", "secret1")
        self.assertEqual(auth.current_user().refresh_token, "refresh-1")
        auth.logout()
        self.assertIsNone(store.get())


class CountingEvent(threading.Event):
    """Event that counts how many threads are blocked in wait()."""

    waiting = 0
    _count_lock = threading.Lock()

    def wait(self, timeout=None):
        with CountingEvent._count_lock:
            CountingEvent.waiting += 1
        return super().wait(timeout)


class TrackedAttempt(_RefreshAttempt):

    def __init__(self):
        super().__init__()
        self.done = CountingEvent()


class TestTokenRefreshCoordinator(unittest.TestCase):

    def setUp(self):
        CountingEvent.waiting = 0

    def test_success_notifies_listeners_with_new_token(self):
        auth = MagicMock()
        auth.refresh_access_token.return_value = True
        auth.current_token.return_value = "access-2"
        coordinator = TokenRefreshCoordinator(auth)
        listener = MagicMock()
        coordinator.add_refresh_listener(listener)

        self.assertTrue(coordinator.refresh_token())
        listener.assert_called_once_with("access-2")
        self.assertFalse(coordinator.is_refreshing)

    def test_error_counts_as_failure(self):
        auth = MagicMock()
        auth.refresh_access_token.side_effect = ApiError("Network error")
        coordinator = TokenRefreshCoordinator(auth)
        listener = MagicMock()
        coordinator.add_refresh_listener(listener)

        self.assertFalse(coordinator.refresh_token())
        listener.assert_not_called()
        self.assertFalse(coordinator.is_refreshing)

    def test_concurrent_callers_share_one_refresh(self):
        started = threading.Event()
        release = threading.Event()

        def slow_refresh():
            started.set()
            release.wait(5)
            return True

        auth = MagicMock()
        auth.refresh_access_token.side_effect = slow_refresh
        coordinator = TokenRefreshCoordinator(auth)

        results = []
        with patch("wt.net.auth._RefreshAttempt", TrackedAttempt):
            owner = threading.Thread(target=lambda: results.append(coordinator.refresh_token()))
            owner.start()
            self.assertTrue(started.wait(5))
            self.assertTrue(coordinator.is_refreshing)

            waiters = [threading.Thread(target=lambda: results.append(coordinator.refresh_token()))
                       for _ in range(3)]
            for t in waiters:
                t.start()
            # Only let the refresh finish once every waiter is blocked on it
            deadline = time.monotonic() + 5
            while CountingEvent.waiting < 3 and time.monotonic() < deadline:
                time.sleep(0.01)
            release.set()
        for t in [owner] + waiters:
            t.join(5)

        self.assertEqual(results, [True, True, True, True])
        auth.refresh_access_token.assert_called_once_with()

    def test_force_logout_delegates(self):
        auth = MagicMock()
        TokenRefreshCoordinator(auth).force_logout()
        auth.force_logout.assert_called_once_with()


if __name__ == "__main__":
    unittest.main()
