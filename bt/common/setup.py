import getpass
import os
import sys
import tempfile
from pathlib import Path
from dataclasses import dataclass

APP_NAME = "BackgroundTimer"

# Lil helper function to create missing directories if missing, and optionally error out when a path
# doesn't exist.
def ensure_directory(path: Path,must_exist=False):
    if must_exist:
        if not path.exists():
            raise FileNotFoundError(f"Required directory is missing: {path}")
        if not path.is_dir():
            raise NotADirectoryError(f"Expected a directory, got a file: {path}")
    else:
        path.mkdir(parents=True,exist_ok=True)
    return path

# Returns the name of the current user, for keeping the shared temp folder per-user.
def _current_user():
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "default"

# Dataclass for accessing paths across program.
@dataclass(frozen=False)
class ProjectPaths:

    config: Path
    state: Path
    logs: Path

    store: Path
    settings: Path

    @staticmethod
    def build():
        # User configuration (settings.json and logs). Env var overrides first, then the usual per-OS spots.
        config_override = os.getenv("BT_CONFIG_DIR")
        if config_override:
            config = Path(config_override)
        elif sys.platform == "win32" and os.getenv("APPDATA"):
            config = Path(os.getenv("APPDATA")) / APP_NAME
        elif os.getenv("XDG_CONFIG_HOME"):
            config = Path(os.getenv("XDG_CONFIG_HOME")) / APP_NAME
        else:
            config = Path.home() / ".config" / APP_NAME
        config = ensure_directory(config)

        # Timer state lives in a shared per-user temp folder, so the scheduled fire handler and any terminal
        # both find it.
        state_override = os.getenv("BT_STATE_DIR")
        if state_override:
            state = Path(state_override)
        else:
            state = Path(tempfile.gettempdir()) / f"{APP_NAME}-{_current_user()}"
        state = ensure_directory(state)

        logs = ensure_directory(config / "logs")

        return ProjectPaths(
            config = config,
            state = state,
            logs = logs,
            store = state / "timers.json",
            settings = config / "settings.json",
        )
PATHS = ProjectPaths.build()
