"""Custom exceptions for notification dispatch."""


class NotificationError(Exception):
    """Notification service rejected or failed a request."""
