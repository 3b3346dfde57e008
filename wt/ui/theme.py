"""Theme colors and stylesheet generation."""

THEMES = {
    "Silverstone Light": {
        "bg": "#F5F6F8",
        "surface": "#FFFFFF",
        "text": "#1F2933",
        "text_muted": "#6B7280",
        "accent": "#2196F3",
        "accent_text": "#FFFFFF",
        "running": "#22C55E",
        "danger": "#EF4444",
        "warning": "#F59E0B",
        "button_bg": "#FFFFFF",
        "button_text": "#1F2933",
        "button_active": "#E3F2FD",
        "separator": "#D1D5DB",
        "border": 1,
    },
    "Silverstone Dark": {
        "bg": "#1E1F24",
        "surface": "#26282F",
        "text": "#E5E7EB",
        "text_muted": "#9CA3AF",
        "accent": "#3B82F6",
        "accent_text": "#FFFFFF",
        "running": "#22C55E",
        "danger": "#F87171",
        "warning": "#FBBF24",
        "button_bg": "#2F323A",
        "button_text": "#E5E7EB",
        "button_active": "#3B4150",
        "separator": "#3F4350",
        "border": 1,
    },
}

DEFAULT_THEME = "Silverstone Light"


def get_theme(theme_name):
    return THEMES.get(theme_name, THEMES[DEFAULT_THEME])


def build_stylesheet(theme_name):
    """Build a Qt stylesheet string from a theme name."""
    t = get_theme(theme_name)
    return (
        f"QMainWindow, QDialog, QWidget {{ background-color: {t['bg']}; }}"
        f"QLabel {{ color: {t['text']}; background: transparent; }}"
        f"QLabel#muted {{ color: {t['text_muted']}; }}"
        f"QLabel#error {{ color: {t['danger']}; }}"
        f"QLabel#timer {{ color: {t['running']}; font-weight: bold; }}"
        f"QWidget#card {{ background-color: {t['surface']}; border: 1px solid {t['separator']}; border-radius: 6px; }}"
        f"QPushButton {{"
        f"  color: {t['button_text']};"
        f"  background-color: {t['button_bg']};"
        f"  border: {t['border']}px solid rgba(128,128,128,0.4);"
        f"  border-radius: 4px;"
        f"  padding: 4px 10px;"
        f"}}"
        f"QPushButton:hover, QPushButton:pressed {{"
        f"  background-color: {t['button_active']};"
        f"}}"
        f"QPushButton:disabled {{ color: {t['text_muted']}; }}"
        f"QPushButton#primary {{"
        f"  color: {t['accent_text']};"
        f"  background-color: {t['accent']};"
        f"  border: none;"
        f"}}"
        f"QPushButton#danger {{"
        f"  color: {t['accent_text']};"
        f"  background-color: {t['danger']};"
        f"  border: none;"
        f"}}"
        f"QLineEdit, QTextEdit {{"
        f"  color: {t['button_text']};"
        f"  background-color: {t['button_bg']};"
        f"  border: {t['border']}px solid rgba(128,128,128,0.4);"
        f"  padding: 3px 5px;"
        f"}}"
        f"QComboBox {{"
        f"  color: {t['button_text']};"
        f"  background-color: {t['button_bg']};"
        f"  border: {t['border']}px solid rgba(128,128,128,0.4);"
        f"  padding: 3px 5px;"
        f"}}"
        f"QComboBox QAbstractItemView {{"
        f"  color: {t['button_text']};"
        f"  background-color: {t['button_bg']};"
        f"  selection-background-color: {t['button_active']};"
        f"}}"
        f"QScrollArea {{ border: none; }}"
        f"QToolTip {{"
        f"  background-color: {t['bg']};"
        f"  color: {t['text']};"
        f"  border: 1px solid {t['separator']};"
        f"  padding: 4px 8px;"
        f"}}"
    )


# Banner colors by message kind, used by MessageBanner.
def banner_style(theme_name, kind):
    t = get_theme(theme_name)
    color = {"error": t["danger"], "warning": t["warning"], "success": t["running"]}.get(kind, t["accent"])
    return f"background-color: {color}; color: #FFFFFF; padding: 6px 10px; border-radius: 4px;"
