"""
Voucher availability watcher package.

This package contains modules for polling the Grivy campaign endpoint,
persisting chats and availability state as JSON, notifying Telegram chats
and coordinating the polling loop.  See README.md for details.
"""

__all__ = [
    "bot",
    "campaign",
    "config",
    "db",
    "main",
    "monitor",
    "notifier",
    "scheduler",
    "utils",
]
