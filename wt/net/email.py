import os
import smtplib
import socket
from email.message import EmailMessage
from wt.common.logger import log
from wt.core.otp import OTP_EXPIRATION

DEFAULT_FROM_EMAIL = "noreply@ssarchitects.ae"
DEFAULT_FROM_NAME = "Silverstone Architects"


class EmailError(Exception):
    """Raised with a user-facing message when an email can't be delivered."""


def _mask(value, keep=5):
    return "EMPTY" if not value else f"{value[:keep]}..."


# Sends OTP emails over SMTP with STARTTLS. Settings come from the environment (populated from .env by
# load_dotenv() at startup).
class EmailService:

    def __init__(self, host=None, port=None, username=None, password=None, from_email=None, from_name=None,
                 timeout=20):
        self.host = host if host is not None else os.getenv("SMTP_HOST", "")
        self.port = int(port if port is not None else os.getenv("SMTP_PORT") or 587)
        self.username = username if username is not None else os.getenv("SMTP_USERNAME", "")
        self.password = password if password is not None else os.getenv("SMTP_PASSWORD", "")
        self.from_email = from_email or os.getenv("FROM_EMAIL") or DEFAULT_FROM_EMAIL
        self.from_name = from_name or os.getenv("FROM_NAME") or DEFAULT_FROM_NAME
        self.timeout = timeout

        log.debug(f"SMTP_HOST: {self.host or 'EMPTY'}")
        log.debug(f"SMTP_PORT: {self.port}")
        log.debug(f"SMTP_USERNAME: {_mask(self.username)}")
        log.debug(f"FROM_EMAIL: {self.from_email}")

    @property
    def configured(self):
        return bool(self.host and self.username and self.password)

    def send_otp_email(self, to_email, code):
        if not self.configured:
            log.error("SMTP credentials not found in environment")
            raise EmailError("SMTP configuration is missing")

        message = EmailMessage()
        message["From"] = f"{self.from_name} <{self.from_email}>"
        message["To"] = to_email
        message["Subject"] = f"Your Login Code - {self.from_name}"
        message.set_content(build_otp_text(code, self.from_name))
        message.add_alternative(build_otp_html(code, self.from_name), subtype="html")

        log.info(f"Sending OTP email to {to_email}")
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                smtp.starttls()
                smtp.login(self.username, self.password)
                smtp.send_message(message)
        except smtplib.SMTPAuthenticationError as e:
            log.error(f"Failed to send OTP email to {to_email}: authentication rejected ({e.smtp_code})")
            raise EmailError("Email authentication failed. Please contact support.") from e
        except (smtplib.SMTPConnectError, smtplib.SMTPServerDisconnected, socket.timeout, ConnectionError) as e:
            log.error(f"Failed to send OTP email to {to_email}: {e}")
            raise EmailError("Network error. Please check your internet connection.") from e
        except (smtplib.SMTPException, OSError) as e:
            log.error(f"Unexpected error sending OTP email to {to_email}: {e}")
            raise EmailError("Failed to send email. Please try again later.") from e

        log.info(f"OTP email sent successfully to {to_email}")
        return True


def _expiry_minutes():
    return int(OTP_EXPIRATION.total_seconds() // 60)


def build_otp_text(code, org_name):
    return (f"Your {org_name} login code is {code}.\n\n"
            f"This code will expire in {_expiry_minutes()} minutes. Never share it with anyone. "
            f"If you didn't request this code, please ignore this email.\n")


def build_otp_html(code, org_name):
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>Your Login Code</title></head>
<body style="margin: 0; padding: 0; font-family: Arial, sans-serif; background-color: #f4f4f4;">
  <table width="100%" cellpadding="0" cellspacing="0" border="0" style="background-color: #f4f4f4; padding: 20px;">
    <tr><td align="center">
      <table width="600" cellpadding="0" cellspacing="0" border="0" style="background-color: #ffffff; border-radius: 8px;">
        <tr><td style="background-color: #2196F3; padding: 30px; text-align: center; border-radius: 8px 8px 0 0;">
          <h1 style="color: #ffffff; margin: 0; font-size: 24px;">{org_name}</h1>
        </td></tr>
        <tr><td style="padding: 40px 30px;">
          <h2 style="color: #333333; margin: 0 0 20px 0; font-size: 20px;">Your Login Code</h2>
          <p style="color: #666666; line-height: 1.6; margin: 0 0 30px 0;">
            You requested a login code for your {org_name} account. Use the code below to complete your login:
          </p>
          <div style="text-align: center; padding: 20px 0;">
            <span style="font-size: 32px; font-weight: bold; color: #2196F3; letter-spacing: 8px; font-family: 'Courier New', monospace;">{code}</span>
          </div>
          <p style="color: #666666; margin: 30px 0 0 0; font-size: 14px;">
            <strong>This code will expire in {_expiry_minutes()} minutes.</strong>
          </p>
          <p style="color: #856404; background-color: #fff3cd; padding: 15px; margin-top: 30px; font-size: 14px;">
            Never share this code with anyone. If you didn't request this code, please ignore this email.
          </p>
        </td></tr>
        <tr><td style="background-color: #f8f9fa; padding: 20px 30px; text-align: center; font-size: 12px; color: #999999;">
          This is an automated email from the {org_name} Time Tracker. Please do not reply to this email.
        </td></tr>
      </table>
    </td></tr>
  </table>
</body>
</html>
"""
