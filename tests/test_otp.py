"""Tests for the OTP issuer: expiry, resend cooldown, rate limiting and the
verify attempt cap.  A fake clock steps through the time windows.
"""

import unittest
from datetime import datetime, timedelta
from unittest.mock import patch

from wt.core.otp import OTPError, OTPService


class FakeClock:

    def __init__(self):
        self.now = datetime(2026, 3, 2, 9, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class TestGenerate(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.otp = OTPService(clock=self.clock)

    def test_code_is_six_digits(self):
        code = self.otp.generate_otp("user@example.com")
        self.assertEqual(len(code), 6)
        self.assertTrue(code.isdigit())
        self.assertTrue(100000 <= int(code) <= 999999)

    def test_code_comes_from_secrets(self):
        """Lowest draw maps to 100000, highest to 999999."""
        with patch("wt.core.otp.secrets.randbelow", return_value=0):
            self.assertEqual(self.otp.generate_otp("a@example.com"), "100000")
        with patch("wt.core.otp.secrets.randbelow", return_value=899999):
            self.assertEqual(self.otp.generate_otp("b@example.com"), "999999")

    def test_email_is_trimmed_and_lowercased(self):
        code = self.otp.generate_otp("  User@Example.COM ")
        self.assertTrue(self.otp.has_pending_otp("user@example.com"))
        self.assertTrue(self.otp.verify_otp("user@example.com", code))

    def test_new_code_replaces_previous(self):
        with patch("wt.core.otp.secrets.randbelow", side_effect=[1, 2]):
            first = self.otp.generate_otp("user@example.com")
            second = self.otp.generate_otp("user@example.com")
        self.assertNotEqual(first, second)
        self.assertFalse(self.otp.verify_otp("user@example.com", first))
        self.assertTrue(self.otp.verify_otp("user@example.com", second))


class TestVerify(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.otp = OTPService(clock=self.clock)
        self.email = "user@example.com"
        self.code = self.otp.generate_otp(self.email)

    def _wrong(self):
        return "000000" if self.code != "000000" else "111111"

    def test_correct_code_is_consumed(self):
        self.assertTrue(self.otp.verify_otp(self.email, self.code))
        # Single use
        self.assertFalse(self.otp.verify_otp(self.email, self.code))
        self.assertFalse(self.otp.has_pending_otp(self.email))

    def test_code_is_trimmed(self):
        self.assertTrue(self.otp.verify_otp(self.email, f" {self.code} "))

    def test_unknown_email_returns_false(self):
        self.assertFalse(self.otp.verify_otp("other@example.com", self.code))

    def test_wrong_code_returns_false_and_keeps_record(self):
        self.assertFalse(self.otp.verify_otp(self.email, self._wrong()))
        self.assertTrue(self.otp.has_pending_otp(self.email))

    def test_still_valid_just_before_expiry(self):
        self.clock.advance(minutes=4, seconds=59)
        self.assertTrue(self.otp.verify_otp(self.email, self.code))

    def test_expires_at_five_minutes(self):
        """Exactly 5 minutes after generation the code is gone, even if correct."""
        self.clock.advance(minutes=5)
        with self.assertRaises(OTPError) as ctx:
            self.otp.verify_otp(self.email, self.code)
        self.assertIn("expired", str(ctx.exception))
        self.assertFalse(self.otp.has_pending_otp(self.email))

    def test_fifth_failure_invalidates_code(self):
        for _ in range(4):
            self.assertFalse(self.otp.verify_otp(self.email, self._wrong()))
        with self.assertRaises(OTPError) as ctx:
            self.otp.verify_otp(self.email, self._wrong())
        self.assertIn("Too many failed attempts", str(ctx.exception))
        # Even the right code no longer works
        self.assertFalse(self.otp.verify_otp(self.email, self.code))

    def test_success_on_fifth_attempt(self):
        for _ in range(4):
            self.otp.verify_otp(self.email, self._wrong())
        self.assertTrue(self.otp.verify_otp(self.email, self.code))


class TestRateLimit(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.otp = OTPService(clock=self.clock)
        self.email = "user@example.com"

    def test_three_requests_allowed_fourth_refused(self):
        for _ in range(3):
            self.otp.generate_otp(self.email)
        with self.assertRaises(OTPError) as ctx:
            self.otp.generate_otp(self.email)
        self.assertIn("Too many OTP requests", str(ctx.exception))

    def test_refusal_reports_remaining_minutes(self):
        for _ in range(3):
            self.otp.generate_otp(self.email)
        self.clock.advance(minutes=3)
        with self.assertRaises(OTPError) as ctx:
            self.otp.generate_otp(self.email)
        self.assertIn("7 minutes", str(ctx.exception))

    def test_window_rolls_over(self):
        for _ in range(3):
            self.otp.generate_otp(self.email)
        self.clock.advance(minutes=10)
        self.otp.generate_otp(self.email)

    def test_limit_is_per_email(self):
        for _ in range(3):
            self.otp.generate_otp(self.email)
        self.otp.generate_otp("other@example.com")

    def test_normalized_emails_share_a_limit(self):
        self.otp.generate_otp("User@Example.com")
        self.otp.generate_otp(" user@example.com")
        self.otp.generate_otp("USER@EXAMPLE.COM ")
        with self.assertRaises(OTPError):
            self.otp.generate_otp(self.email)


class TestResend(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.otp = OTPService(clock=self.clock)
        self.email = "user@example.com"

    def test_can_resend_without_pending_code(self):
        self.assertTrue(self.otp.can_resend_otp(self.email))
        self.assertEqual(self.otp.remaining_cooldown(self.email), 0)

    def test_resend_refused_during_cooldown(self):
        self.otp.generate_otp(self.email)
        self.clock.advance(seconds=20)
        self.assertFalse(self.otp.can_resend_otp(self.email))
        with self.assertRaises(OTPError) as ctx:
            self.otp.resend_otp(self.email)
        self.assertIn("40 seconds", str(ctx.exception))

    def test_resend_allowed_after_cooldown(self):
        with patch("wt.core.otp.secrets.randbelow", side_effect=[5, 6]):
            first = self.otp.generate_otp(self.email)
            self.clock.advance(seconds=60)
            second = self.otp.resend_otp(self.email)
        self.assertNotEqual(first, second)
        self.assertTrue(self.otp.verify_otp(self.email, second))

    def test_remaining_expiration(self):
        self.otp.generate_otp(self.email)
        self.clock.advance(seconds=60)
        self.assertEqual(self.otp.remaining_expiration(self.email), 240)
        self.clock.advance(minutes=10)
        self.assertEqual(self.otp.remaining_expiration(self.email), 0)

    def test_clear_all(self):
        for _ in range(3):
            self.otp.generate_otp(self.email)
        self.otp.clear_all()
        self.assertFalse(self.otp.has_pending_otp(self.email))
        # Rate limit history is gone too
        self.otp.generate_otp(self.email)


if __name__ == "__main__":
    unittest.main()
