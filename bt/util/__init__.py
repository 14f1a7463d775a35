from .misc import local_now, now_iso, parse_iso, format_time, format_duration

__all__ = ["local_now", "now_iso", "parse_iso", "format_time", "format_duration"]
