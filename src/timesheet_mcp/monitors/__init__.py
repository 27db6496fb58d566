"""Periodic sweeps over active sessions and user preferences."""

from .auto_shutdown import AutoShutdownMonitor
from .forgot_shutdown import ForgotShutdownMonitor
from .reminders import LunchReminderMonitor, WorkHoursAlertMonitor
from .scheduler import MonitorScheduler, PeriodicTask

__all__ = [
    "AutoShutdownMonitor",
    "ForgotShutdownMonitor",
    "LunchReminderMonitor",
    "MonitorScheduler",
    "PeriodicTask",
    "WorkHoursAlertMonitor",
]
