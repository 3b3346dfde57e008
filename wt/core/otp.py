"""One-time password issuance and verification. Pure logic, no I/O.

Codes live only in memory and are keyed by the trimmed, lowercased email.
Nothing survives a restart.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from wt.common.logger import log

OTP_EXPIRATION = timedelta(minutes=5)
RESEND_COOLDOWN = timedelta(seconds=60)
MAX_REQUESTS_PER_WINDOW = 3
RATE_LIMIT_WINDOW = timedelta(minutes=10)
MAX_VERIFY_ATTEMPTS = 5


class OTPError(Exception):
    """Raised when a code can't be issued or has been invalidated."""


@dataclass
class _OTPRecord:
    code: str
    generated_at: datetime
    attempts: int = 0


def _normalize(email):
    return email.strip().lower()


class OTPService:

    # `clock` returns "now" as a datetime; tests pass a fake one to step through expiry windows.
    def __init__(self, clock=datetime.now):
        self._clock = clock
        self._otps = {}          # email -> _OTPRecord
        self._requests = {}      # email -> [datetime, ...] oldest first

    # Issue a new 6-digit code for the email, replacing any previous one. Raises OTPError if the email has already
    # requested MAX_REQUESTS_PER_WINDOW codes inside the rate-limit window.
    def generate_otp(self, email):
        email = _normalize(email)

        if not self._check_rate_limit(email):
            minutes = self._rate_limit_remaining_minutes(email)
            raise OTPError(f"Too many OTP requests. Please try again in {minutes} minutes.")

        code = str(secrets.randbelow(900000) + 100000)
        self._otps[email] = _OTPRecord(code=code, generated_at=self._clock())
        self._record_request(email)

        log.info(f"OTP generated for {email} (expires in {int(OTP_EXPIRATION.total_seconds() // 60)} minutes)")
        self._cleanup_expired()
        return code

    # Returns True and consumes the code on a match. Returns False for a wrong code or an email with no code.
    # Raises OTPError when the code has expired or this was the final allowed attempt; both delete the record.
    def verify_otp(self, email, code):
        email = _normalize(email)
        code = code.strip()

        record = self._otps.get(email)
        if record is None:
            log.warning(f"OTP verification failed: No OTP found for {email}")
            return False

        if self._is_expired(record):
            log.warning(f"OTP verification failed: OTP expired for {email}")
            self._clear(email)
            raise OTPError("OTP has expired. Please request a new code.")

        record.attempts += 1

        if secrets.compare_digest(record.code, code):
            log.info(f"OTP verified successfully for {email}")
            self._clear(email)
            return True

        log.warning(f"OTP verification failed: Invalid code for {email} (attempt {record.attempts})")
        if record.attempts >= MAX_VERIFY_ATTEMPTS:
            log.warning(f"OTP cleared due to too many failed attempts for {email}")
            self._clear(email)
            raise OTPError("Too many failed attempts. Please request a new code.")
        return False

    def resend_otp(self, email):
        email = _normalize(email)
        if not self.can_resend_otp(email):
            raise OTPError(f"Please wait {self.remaining_cooldown(email)} seconds before requesting a new code.")
        return self.generate_otp(email)

    def can_resend_otp(self, email):
        record = self._otps.get(_normalize(email))
        if record is None:
            return True
        return self._clock() - record.generated_at >= RESEND_COOLDOWN

    # Whole seconds left before a resend is allowed, 0 if it already is.
    def remaining_cooldown(self, email):
        record = self._otps.get(_normalize(email))
        if record is None:
            return 0
        elapsed = int((self._clock() - record.generated_at).total_seconds())
        return max(0, int(RESEND_COOLDOWN.total_seconds()) - elapsed)

    # Whole seconds until the current code expires, 0 if there is none or it already has.
    def remaining_expiration(self, email):
        record = self._otps.get(_normalize(email))
        if record is None:
            return 0
        elapsed = int((self._clock() - record.generated_at).total_seconds())
        return max(0, int(OTP_EXPIRATION.total_seconds()) - elapsed)

    def has_pending_otp(self, email):
        return _normalize(email) in self._otps

    def clear_all(self):
        self._otps.clear()
        self._requests.clear()
        log.debug("All OTP data cleared")

    # ------------------------------------------------------------------ #
    #  Internals                                                           #
    # ------------------------------------------------------------------ #

    def _is_expired(self, record):
        return self._clock() - record.generated_at >= OTP_EXPIRATION

    def _clear(self, email):
        self._otps.pop(email, None)
        log.debug(f"OTP cleared for {email}")

    def _check_rate_limit(self, email):
        window_start = self._clock() - RATE_LIMIT_WINDOW
        recent = [t for t in self._requests.get(email, []) if t > window_start]
        return len(recent) < MAX_REQUESTS_PER_WINDOW

    def _record_request(self, email):
        now = self._clock()
        window_start = now - RATE_LIMIT_WINDOW
        requests = self._requests.setdefault(email, [])
        requests.append(now)
        requests[:] = [t for t in requests if t >= window_start]

    def _rate_limit_remaining_minutes(self, email):
        requests = self._requests.get(email)
        if not requests:
            return 0
        minutes_since_oldest = int((self._clock() - requests[0]).total_seconds() // 60)
        return max(0, int(RATE_LIMIT_WINDOW.total_seconds() // 60) - minutes_since_oldest)

    def _cleanup_expired(self):
        expired = [email for email, record in self._otps.items() if self._is_expired(record)]
        for email in expired:
            self._clear(email)
        if expired:
            log.debug(f"Cleaned up {len(expired)} expired OTPs")
