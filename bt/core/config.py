import copy
import json
import os
from bt.common.logger import log
from bt.common.setup import PATHS


#region === Helpers and Paths ===

SETTINGS_PATH = PATHS.settings

ID_MODES = ("sequential", "random")
SCHEDULERS = ("auto", "systemd", "windows", "none")

# Default values for every key in settings.json.
_SETTINGS_DEFAULTS = {
    "id_mode": "sequential",
    "scheduler": "auto",
    "presets": {
        "pomodoro": "(25m work, 5m rest)x4",
        "pomodoro-long": "(25m work, 5m rest)x3, 25m work, 20m break",
        "52-17": "52m work, 17m rest",
    },
    "default_message": "Timer complete",
    "watch_interval": 1.0,
    "bar_width": 30,
    "sound": True,
    "cache_ttl": 2.0,
}
# Allowed choices for the string settings that only take a fixed set of values.
_SETTINGS_CHOICES = {
    "id_mode": ID_MODES,
    "scheduler": SCHEDULERS,
}

# Helper to return a truly fresh, default settings dict.
def build_default_settings():
    return copy.deepcopy(_SETTINGS_DEFAULTS)

# True when value has the same JSON type as the default. Ints are accepted where floats are expected, bools never
# count as numbers.
def _matches_default_type(value, default):
    if isinstance(default, bool):
        return isinstance(value, bool)
    if isinstance(default, float):
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if isinstance(default, int):
        return isinstance(value, int) and not isinstance(value, bool)
    return isinstance(value, type(default))

#endregion === Helpers and Paths ===

#region === Saving and Loading Settings ===

# Loads settings.json, filling in any missing or invalid values from the defaults. A missing file just means
# defaults, a corrupt one means defaults plus a warning in the log.
def load_settings(path=None):
    path = path or SETTINGS_PATH
    try:
        if not os.path.exists(path):
            log.info(f"No settings file at '{path}', using default settings.")
            return build_default_settings()

        with open(path, "r", encoding="utf-8") as f:
            settings = json.load(f)
        if not isinstance(settings, dict):
            raise TypeError(f"settings root must be an object, got {type(settings).__name__}")

        defaulted_values = set()
        for key, default in _SETTINGS_DEFAULTS.items():
            if key not in settings or not _matches_default_type(settings[key], default):
                defaulted_values.add(key)
                settings[key] = copy.deepcopy(default)
            elif key in _SETTINGS_CHOICES and settings[key] not in _SETTINGS_CHOICES[key]:
                defaulted_values.add(key)
                settings[key] = default

        # Presets must map names to pattern strings, anything else is dropped.
        bad_presets = [name for name, pattern in settings["presets"].items() if not isinstance(pattern, str)]
        for name in bad_presets:
            defaulted_values.add(f"presets.{name}")
            del settings["presets"][name]

        if settings["watch_interval"] <= 0:
            defaulted_values.add("watch_interval")
            settings["watch_interval"] = _SETTINGS_DEFAULTS["watch_interval"]
        if settings["bar_width"] < 5:
            defaulted_values.add("bar_width")
            settings["bar_width"] = _SETTINGS_DEFAULTS["bar_width"]

        # Log results
        if defaulted_values:
            log.warning(f"Loaded settings from '{path}', but with missing or invalid values that were defaulted: {', '.join(sorted(defaulted_values))}")
        else:
            log.info(f"Successfully loaded settings from '{path}'.")
        return settings
    # Fall back to default settings in case of error, but warn in log
    except (json.JSONDecodeError, OSError, TypeError, AttributeError):
        log.warning(f"Ran into an error while trying to load '{path}', falling back to default settings.",exc_info=True)
        return build_default_settings()

# Write the given settings to disk.
def save_settings(settings, path=None):
    path = path or SETTINGS_PATH
    with open(path, "w", encoding="utf-8") as f:
        json.dump(settings, f, indent=2)
    log.info(f"Successfully saved settings to '{path}'")

#endregion === Saving and Loading Settings ===
