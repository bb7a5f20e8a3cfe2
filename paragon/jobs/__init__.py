# Paragon Jobs Module
# ===================
# APScheduler timers driving the session engine

from .scheduler import JobScheduler, ScheduledJob

__all__ = ["JobScheduler", "ScheduledJob"]
