"""
Activity & Notification Recorder

Audit trail entries and targeted/broadcast notifications.
"""

from stocktrail.activity.recorder import (
    ActivityRecorder,
    LogView,
    NotificationView,
)

__all__ = [
    "ActivityRecorder",
    "LogView",
    "NotificationView",
]
