"""Telegram bot surface.

Registers chats on /start and exposes the manual commands.  Anything that
touches the availability state goes through the scheduler queue.
"""
from __future__ import annotations

import logging
from concurrent.futures import CancelledError, TimeoutError as FutureTimeoutError
from typing import Any

import telebot

from . import config
from .db import SubscriberRegistry
from .monitor import AvailabilityMonitor
from .notifier import Notifier
from .scheduler import Scheduler

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "🤖 Voucher watcher\n\n"
    "/start - register this chat for notifications\n"
    "/status - check the campaign now and broadcast the result\n"
    "/reset - re-arm the notification for the next availability\n"
    "/list - number of registered chats\n"
    "/testnotif - send a test notification to every chat\n"
    "/help - this message"
)


class TelegramTransport:
    """Sends plain-text messages through a TeleBot instance."""

    def __init__(self, bot: telebot.TeleBot) -> None:
        self.bot = bot

    def send_message(self, chat_id: Any, text: str) -> None:
        self.bot.send_message(chat_id, text)


def create_bot(token: str) -> telebot.TeleBot:
    return telebot.TeleBot(token, parse_mode=None)


class BotCommands:
    def __init__(
        self,
        bot: telebot.TeleBot,
        registry: SubscriberRegistry,
        notifier: Notifier,
        monitor: AvailabilityMonitor,
        scheduler: Scheduler,
        *,
        status_timeout: float = config.MANUAL_CHECK_TIMEOUT_SECONDS,
    ) -> None:
        self.bot = bot
        self.registry = registry
        self.notifier = notifier
        self.monitor = monitor
        self.scheduler = scheduler
        self.status_timeout = status_timeout

    def register(self) -> None:
        self.bot.register_message_handler(self.on_start, commands=["start"])
        self.bot.register_message_handler(self.on_testnotif, commands=["testnotif"])
        self.bot.register_message_handler(self.on_list, commands=["list"])
        self.bot.register_message_handler(self.on_status, commands=["status"])
        self.bot.register_message_handler(self.on_reset, commands=["reset"])
        self.bot.register_message_handler(self.on_help, commands=["help"])

    def on_start(self, message) -> None:
        chat = message.chat
        user = message.from_user
        display_name = "unknown"
        if user is not None:
            display_name = user.username or user.first_name or "unknown"

        if self.registry.register_if_absent(chat.id, display_name, chat.type):
            self.bot.reply_to(
                message,
                "✅ This chat is now registered.\n"
                "I will send a notification when vouchers become available.",
            )
        else:
            self.bot.reply_to(message, "ℹ️ This chat was already registered.")

    def on_testnotif(self, message) -> None:
        self.bot.reply_to(message, "✅ OK, sending a test notification...")
        self.notifier.notify_all("✅ TEST: bot notifications are working.")

    def on_list(self, message) -> None:
        self.bot.reply_to(message, f"Registered: {self.registry.count()} chat(s)")

    def on_status(self, message) -> None:
        self.bot.reply_to(message, "🔍 Fetching status from the API...")
        fut = self.scheduler.request_check(manual=True)
        try:
            fut.result(timeout=self.status_timeout)
        except FutureTimeoutError:
            self.bot.reply_to(message, "⏳ Check is still running; the result will be broadcast when it finishes.")
            return
        except CancelledError:
            self.bot.reply_to(message, "🛑 Check cancelled, the service is shutting down.")
            return
        except Exception:
            # Already logged by the scheduler worker.
            self.bot.reply_to(message, "❌ Check failed unexpectedly, see the service log.")
            return
        self.bot.reply_to(message, "✅ Done.")

    def on_reset(self, message) -> None:
        fut = self.scheduler.submit(self.monitor.reset)
        try:
            changed = fut.result(timeout=self.status_timeout)
        except FutureTimeoutError:
            self.bot.reply_to(message, "⏳ Reset is queued behind a running check; it will apply shortly.")
            return
        except CancelledError:
            self.bot.reply_to(message, "🛑 Reset cancelled, the service is shutting down.")
            return
        except Exception:
            self.bot.reply_to(message, "❌ Reset failed unexpectedly, see the service log.")
            return
        if changed:
            self.bot.reply_to(
                message,
                "♻️ State reset. You will be notified again when vouchers become AVAILABLE.",
            )
        else:
            self.bot.reply_to(
                message,
                "ℹ️ Already armed: the next time vouchers become AVAILABLE you will be notified.",
            )

    def on_help(self, message) -> None:
        self.bot.reply_to(message, HELP_TEXT)


__all__ = ["TelegramTransport", "BotCommands", "create_bot", "HELP_TEXT"]
