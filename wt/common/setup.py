import os
import sys
from pathlib import Path
from dataclasses import dataclass

# Creates the directory (and parents) if needed and hands the path back, so it can be used inline.
def ensure_directory(path: Path) -> Path:
    if path.exists() and not path.is_dir():
        raise NotADirectoryError(f"Expected a directory, got a file: {path}")
    path.mkdir(parents=True,exist_ok=True)
    return path

# Returns the per-user base directory that WorkTracker keeps its data under. WORKTRACKER_HOME always wins, which
# is also what the tests use to keep everything in a temp dir.
def _user_data_root() -> Path:
    override = os.getenv("WORKTRACKER_HOME")
    if override:
        return Path(override)
    if sys.platform == "win32":
        appdata = os.getenv("APPDATA")
        if not appdata:
            raise RuntimeError("Missing APPDATA environment variable, cannot determine data directories.")
        return Path(appdata) / "WorkTracker"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "WorkTracker"
    xdg = os.getenv("XDG_DATA_HOME")
    return (Path(xdg) if xdg else Path.home() / ".local" / "share") / "worktracker"

# Dataclass for accessing paths across program.
@dataclass(frozen=False)
class ProjectPaths:

    root: Path
    data: Path
    assets: Path

    logs: Path
    current: Path

    @staticmethod
    def build():
        # Folder for the install itself. Frozen builds keep assets next to the exe, source runs use the repo root.
        if getattr(sys, "frozen", False):
            root = Path(sys.executable).resolve().parent
        else:
            root = Path(__file__).resolve().parents[2]

        # Assets are optional, the UI falls back to text glyphs when icons are missing.
        assets = root / "assets"

        # Folder for all user-specific and session related stuff
        data = ensure_directory(_user_data_root())

        # Folders within the data folder
        logs = ensure_directory(data / "logs")
        current = ensure_directory(data / "current")

        return ProjectPaths(
            root = root,
            data = data,
            assets = assets,
            logs = logs,
            current = current,
        )
PATHS = ProjectPaths.build()
