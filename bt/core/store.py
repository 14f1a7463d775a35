import json
import os
import secrets
import tempfile
import time as _time
from bt.common.logger import log
from bt.core.timer_state import Timer


# Owns timers.json. Everything reads and writes the whole collection at once; there are no per-timer updates.
class TimerStore:

    def __init__(self, path, cache_ttl=2.0):
        self.path = path
        self.cache_ttl = cache_ttl
        # Set once a corrupt file has been seen, so the CLI can warn about it a single time.
        self.corruption_detected = False
        self._cache = None
        self._cache_mtime = None
        self._cache_time = 0.0

    # Returns the file's mtime, or None when it doesn't exist.
    def _mtime(self):
        try:
            return os.stat(self.path).st_mtime_ns
        except FileNotFoundError:
            return None

    def invalidate(self):
        self._cache = None
        self._cache_mtime = None

    #region === Loading ===

    # Loads every stored timer. Missing, empty or corrupt files all come back as an empty list. The cached list is
    # served while it's younger than cache_ttl and the file hasn't been touched since; `force` always re-reads.
    def load(self, force=False):
        mtime = self._mtime()
        if (not force and self._cache is not None and mtime == self._cache_mtime
                and _time.monotonic() - self._cache_time < self.cache_ttl):
            return [timer.copy() for timer in self._cache]

        timers = self._read()
        self._cache = timers
        self._cache_mtime = mtime
        self._cache_time = _time.monotonic()
        return [timer.copy() for timer in timers]

    def _read(self):
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = f.read()
        except FileNotFoundError:
            return []
        except OSError:
            log.warning(f"Could not read timer store '{self.path}', treating it as empty.", exc_info=True)
            self.corruption_detected = True
            return []

        if not raw.strip():
            return []

        try:
            records = json.loads(raw)
            # A single record saved on its own is still a valid store
            if isinstance(records, dict):
                records = [records]
            if not isinstance(records, list):
                raise TypeError(f"expected a list of timers, got {type(records).__name__}")
            timers = [Timer.from_dict(record) for record in records]
        except (json.JSONDecodeError, TypeError, KeyError, ValueError, AttributeError):
            log.warning(f"Timer store '{self.path}' is corrupt, treating it as empty.", exc_info=True)
            self.corruption_detected = True
            return []

        log.debug(f"Loaded {len(timers)} timers from '{self.path}'")
        return timers

    def find(self, timer_id, force=False):
        for timer in self.load(force=force):
            if timer.id == timer_id:
                return timer
        return None

    #endregion === Loading ===

    #region === Saving ===

    # Writes the whole collection. An empty collection deletes the file instead, so "no timers" leaves nothing behind.
    def save(self, timers):
        if not timers:
            try:
                os.remove(self.path)
                log.info(f"No timers left, removed '{self.path}'")
            except FileNotFoundError:
                pass
            self.invalidate()
            return

        payload = json.dumps([timer.to_dict() for timer in timers], indent=2)
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)

        # Write to a temp file next to the store, then swap it in, so readers never see a half-written file.
        fd, temp_path = tempfile.mkstemp(prefix=".timers-", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(temp_path, self.path)
        except BaseException:
            try: os.remove(temp_path)
            except OSError: pass
            raise
        self.invalidate()
        log.info(f"Saved {len(timers)} timers to '{self.path}'")

    #endregion === Saving ===

    #region === IDs ===

    # Next sequential id: one past the highest numeric id currently stored.
    @staticmethod
    def next_sequential_id(timers):
        numeric = [int(timer.id) for timer in timers if timer.id.isdigit()]
        return str(max(numeric, default=0) + 1)

    # Short random hex id that isn't used by any stored timer.
    @staticmethod
    def next_random_id(timers):
        taken = {timer.id for timer in timers}
        while True:
            candidate = secrets.token_hex(2)
            # All-digit ids would collide with the sequential scheme
            if candidate not in taken and not candidate.isdigit():
                return candidate

    def next_id(self, timers, mode="sequential"):
        if mode == "random":
            return self.next_random_id(timers)
        return self.next_sequential_id(timers)

    #endregion === IDs ===
