from .stats import Report, Stats, Tracker, track
from .log import PingerLogger, log_calls, format_packet
from .errors import ErrorPinger, inject_errors

__all__ = [
    "Report",
    "Stats",
    "Tracker",
    "track",
    "PingerLogger",
    "log_calls",
    "format_packet",
    "ErrorPinger",
    "inject_errors",
]
