from datetime import datetime



# Simply returns the current local time as a timezone-aware datetime, truncated to whole seconds.
def local_now():
    return datetime.now().astimezone().replace(microsecond=0)

# Simply returns the current local time as an ISO8601 string with timezone offset.
def now_iso():
    return local_now().isoformat()


# Parses an ISO8601 timestamp back into an aware datetime. Returns None for anything unparseable, naive
# timestamps are assumed to be local time.
def parse_iso(value):
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def format_time(seconds):
    """Format seconds as HH:MM:SS. Negative values clamp to zero."""
    seconds = max(0, int(seconds))
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


# Turns seconds into the compact "1h20m5s" style used for durations everywhere in the CLI.
def format_duration(seconds):
    seconds = max(0, int(seconds))
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    parts = []
    if h:
        parts.append(f"{h}h")
    if m:
        parts.append(f"{m}m")
    if s or not parts:
        parts.append(f"{s}s")
    return "".join(parts)
