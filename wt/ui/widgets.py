"""Small widget builders shared by the dashboard, floating widget and dialogs.

Row builders return a (container, widget_dict) tuple.  The container can be
inserted straight into a layout; the widget_dict maps logical names to the
sub-widgets that get updated on every tick.
"""

from PySide6.QtCore import Qt, QTimer
from PySide6.QtGui import QFont
from PySide6.QtWidgets import QHBoxLayout, QLabel, QPushButton, QSizePolicy, QVBoxLayout, QWidget
from wt.ui.theme import banner_style
from wt.util import format_hms, format_short


def make_button(text, font_family, size=10, role=None, on_click=None):
    btn = QPushButton(text)
    btn.setFont(QFont(font_family, size))
    btn.setCursor(Qt.PointingHandCursor)
    if role:
        btn.setObjectName(role)
    if on_click is not None:
        btn.clicked.connect(on_click)
    return btn


def make_label(text, font_family, size=10, bold=False, role=None):
    lbl = QLabel(text)
    font = QFont(font_family, size)
    font.setBold(bold)
    lbl.setFont(font)
    if role:
        lbl.setObjectName(role)
    return lbl


# Transient message strip. Errors stay until replaced or dismissed; other kinds fade out after a few seconds.
class MessageBanner(QLabel):

    def __init__(self, theme_name, parent=None):
        super().__init__(parent)
        self.theme_name = theme_name
        self.setWordWrap(True)
        self.setVisible(False)
        self._hide_timer = QTimer(self)
        self._hide_timer.setSingleShot(True)
        self._hide_timer.timeout.connect(self.clear_message)

    def show_message(self, text, kind="info", timeout_ms=4000):
        self.setText(text)
        self.setStyleSheet(banner_style(self.theme_name, kind))
        self.setVisible(True)
        self._hide_timer.stop()
        if kind != "error" and timeout_ms:
            self._hide_timer.start(timeout_ms)

    def clear_message(self):
        self.setText("")
        self.setVisible(False)

    def mousePressEvent(self, event):
        self.clear_message()
        super().mousePressEvent(event)


# One project in the dashboard list: name, today's time, and a Start/Stop toggle.
def build_project_row(font_family, project, completed_seconds, running, on_toggle):
    rc = QWidget()
    rc.setObjectName("card")
    lay = QHBoxLayout(rc)
    lay.setContentsMargins(10, 6, 10, 6)
    lay.setSpacing(8)

    text_col = QVBoxLayout()
    text_col.setSpacing(0)
    name_lbl = make_label(project.name, font_family, 11, bold=True)
    name_lbl.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Preferred)
    client_lbl = make_label(project.client or "", font_family, 9, role="muted")
    client_lbl.setVisible(bool(project.client))
    text_col.addWidget(name_lbl)
    text_col.addWidget(client_lbl)
    lay.addLayout(text_col, 1)

    today_lbl = make_label(format_short(completed_seconds), font_family, 10, role="muted")
    today_lbl.setToolTip("Completed time today")
    lay.addWidget(today_lbl)

    time_lbl = make_label(format_hms(0), font_family, 11, bold=True, role="timer")
    time_lbl.setVisible(running)
    lay.addWidget(time_lbl)

    toggle_btn = make_button("Stop" if running else "Start", font_family, 10,
                             role="danger" if running else "primary",
                             on_click=lambda: on_toggle(project))
    toggle_btn.setMinimumWidth(64)
    lay.addWidget(toggle_btn)

    return rc, {"name": name_lbl, "today": today_lbl, "time": time_lbl, "toggle": toggle_btn}
