class SchedulerError(Exception):
    """Base class for scheduler errors."""


class InvalidScheduleError(SchedulerError, ValueError):
    """Raised when a task is registered with a malformed schedule or options."""


class CacheUnavailableError(SchedulerError):
    """Raised by a cache store when its backend cannot be reached."""


class ScheduleLoadError(SchedulerError):
    """Raised when the task registry cannot be imported."""
