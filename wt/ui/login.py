from PySide6.QtCore import Qt, QTimer
from PySide6.QtWidgets import QDialog, QHBoxLayout, QLineEdit, QStackedWidget, QVBoxLayout, QWidget
from wt.common.logger import log
from wt.ui.theme import build_stylesheet
from wt.ui.widgets import make_button, make_label

_PASSWORD_PAGE = 0
_EMAIL_PAGE = 1
_CODE_PAGE = 2

# Login screen. Password login by default; email OTP login when auth_mode is "otp" or the user switches to it.
# After exec() returns Accepted, `user` holds the logged in User.
class LoginDialog(QDialog):

    def __init__(self, ctx, bridge, parent=None):
        super().__init__(parent)
        self.ctx = ctx
        self.bridge = bridge
        self.user = None
        self._otp_email = None

        s = ctx.settings
        self.font_family = s["font"]
        self.setWindowTitle("WorkTracker - Sign in")
        self.setWindowFlags(self.windowFlags() | Qt.WindowStaysOnTopHint)
        self.setModal(True)
        self.setMinimumWidth(360)
        self.setStyleSheet(build_stylesheet(s["theme"]))

        outer = QVBoxLayout(self)
        outer.setContentsMargins(24, 24, 24, 24)
        outer.setSpacing(12)
        outer.addWidget(make_label("WorkTracker", self.font_family, 18, bold=True))
        self._subtitle = make_label("Sign in to start tracking", self.font_family, 10, role="muted")
        outer.addWidget(self._subtitle)

        self._stack = QStackedWidget()
        self._stack.addWidget(self._build_password_page())
        self._stack.addWidget(self._build_email_page())
        self._stack.addWidget(self._build_code_page())
        outer.addWidget(self._stack)

        self._error_lbl = make_label("", self.font_family, 10, role="error")
        self._error_lbl.setWordWrap(True)
        self._error_lbl.setVisible(False)
        outer.addWidget(self._error_lbl)

        self._switch_btn = make_button("", self.font_family, 9, on_click=self._toggle_mode)
        self._switch_btn.setFlat(True)
        outer.addWidget(self._switch_btn, alignment=Qt.AlignRight)

        self._cooldown_timer = QTimer(self)
        self._cooldown_timer.timeout.connect(self._update_cooldown)

        self._show_page(_EMAIL_PAGE if ctx.auth_mode == "otp" else _PASSWORD_PAGE)

    # ------------------------------------------------------------------ #
    #  Pages                                                               #
    # ------------------------------------------------------------------ #

    def _build_password_page(self):
        page = QWidget()
        lay = QVBoxLayout(page)
        lay.setContentsMargins(0, 0, 0, 0)
        self._email = QLineEdit()
        self._email.setPlaceholderText("Email")
        self._password = QLineEdit()
        self._password.setPlaceholderText("Password")
        self._password.setEchoMode(QLineEdit.Password)
        self._password.returnPressed.connect(self._login_with_password)
        self._login_btn = make_button("Sign in", self.font_family, 11, role="primary",
                                      on_click=self._login_with_password)
        lay.addWidget(self._email)
        lay.addWidget(self._password)
        lay.addWidget(self._login_btn)
        return page

    def _build_email_page(self):
        page = QWidget()
        lay = QVBoxLayout(page)
        lay.setContentsMargins(0, 0, 0, 0)
        self._otp_email_edit = QLineEdit()
        self._otp_email_edit.setPlaceholderText("Email")
        self._otp_email_edit.returnPressed.connect(self._send_code)
        self._send_btn = make_button("Send login code", self.font_family, 11, role="primary",
                                     on_click=self._send_code)
        lay.addWidget(self._otp_email_edit)
        lay.addWidget(self._send_btn)
        return page

    def _build_code_page(self):
        page = QWidget()
        lay = QVBoxLayout(page)
        lay.setContentsMargins(0, 0, 0, 0)
        self._code_info = make_label("", self.font_family, 10, role="muted")
        self._code_info.setWordWrap(True)
        self._code = QLineEdit()
        self._code.setPlaceholderText("6-digit code")
        self._code.setMaxLength(6)
        self._code.returnPressed.connect(self._verify_code)
        self._verify_btn = make_button("Verify", self.font_family, 11, role="primary", on_click=self._verify_code)

        row = QHBoxLayout()
        self._resend_btn = make_button("Resend code", self.font_family, 9, on_click=self._resend_code)
        row.addWidget(make_button("Change email", self.font_family, 9,
                                  on_click=lambda: self._show_page(_EMAIL_PAGE)))
        row.addStretch()
        row.addWidget(self._resend_btn)

        lay.addWidget(self._code_info)
        lay.addWidget(self._code)
        lay.addWidget(self._verify_btn)
        lay.addLayout(row)
        return page

    def _show_page(self, index):
        self._stack.setCurrentIndex(index)
        self._clear_error()
        self._switch_btn.setVisible(index != _CODE_PAGE)
        self._switch_btn.setText("Use an email code instead" if index == _PASSWORD_PAGE
                                 else "Use a password instead")
        if index != _CODE_PAGE:
            self._cooldown_timer.stop()

    def _toggle_mode(self):
        self._show_page(_EMAIL_PAGE if self._stack.currentIndex() == _PASSWORD_PAGE else _PASSWORD_PAGE)

    # ------------------------------------------------------------------ #
    #  Feedback                                                            #
    # ------------------------------------------------------------------ #

    def _show_error(self, error):
        self._error_lbl.setText(str(error))
        self._error_lbl.setVisible(True)
        self._set_busy(False)

    def _clear_error(self):
        self._error_lbl.setText("")
        self._error_lbl.setVisible(False)

    def _set_busy(self, busy):
        for widget in (self._login_btn, self._send_btn, self._verify_btn, self._switch_btn):
            widget.setEnabled(not busy)
        if not busy:
            self._update_cooldown()

    def _update_cooldown(self):
        if self._otp_email is None:
            return
        remaining = self.ctx.otp.remaining_cooldown(self._otp_email)
        self._resend_btn.setEnabled(remaining == 0)
        self._resend_btn.setText("Resend code" if remaining == 0 else f"Resend in {remaining}s")
        if remaining == 0:
            self._cooldown_timer.stop()

    # ------------------------------------------------------------------ #
    #  Password login                                                      #
    # ------------------------------------------------------------------ #

    def _login_with_password(self):
        self._clear_error()
        self._set_busy(True)
        self.bridge.run_in_background(self.ctx.auth.login_with_password, self._email.text(), self._password.text(),
                                      on_done=self._logged_in, on_error=self._show_error)

    def _logged_in(self, user):
        log.info(f"Login dialog accepted for {user.email}")
        self.user = user
        self._cooldown_timer.stop()
        self.accept()

    # ------------------------------------------------------------------ #
    #  OTP login                                                           #
    # ------------------------------------------------------------------ #

    def _send_code(self, resend=False):
        email = self._otp_email if resend else self._otp_email_edit.text().strip()
        self._clear_error()
        self._set_busy(True)
        self.bridge.run_in_background(self.ctx.auth.send_otp, email, resend=resend,
                                      on_done=lambda _: self._code_sent(email), on_error=self._show_error)

    def _resend_code(self):
        self._send_code(resend=True)

    def _code_sent(self, email):
        self._otp_email = email
        self._code.clear()
        self._code_info.setText(f"We sent a 6-digit code to {email}. It expires in 5 minutes.")
        self._show_page(_CODE_PAGE)
        self._set_busy(False)
        self._cooldown_timer.start(1000)
        self._code.setFocus()

    def _verify_code(self):
        code = self._code.text().strip()
        if len(code) != 6 or not code.isdigit():
            self._show_error("Please enter the 6-digit code")
            return
        self._clear_error()
        self._set_busy(True)
        self.bridge.run_in_background(self.ctx.auth.verify_otp_and_login, self._otp_email, code,
                                      on_done=self._code_checked, on_error=self._show_error)

    def _code_checked(self, user):
        if user is None:
            self._show_error("Invalid code. Please try again.")
            self._code.selectAll()
            return
        self._logged_in(user)

    def reject(self):
        self._cooldown_timer.stop()
        super().reject()
