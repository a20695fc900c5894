"""Telegram broadcast notifier.

Sends one text message to every registered chat.  Delivery to each chat is
independent: a failure is logged and recorded, and the remaining chats are
still attempted.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, List, Protocol

from . import config
from .db import Subscriber, SubscriberRegistry

logger = logging.getLogger(__name__)


class MessageTransport(Protocol):
    def send_message(self, chat_id: Any, text: str) -> None:
        ...


class DeliveryError(Exception):
    """Delivery to a single chat failed."""

    def __init__(self, chat_id: Any, cause: BaseException) -> None:
        self.chat_id = chat_id
        self.cause = cause
        super().__init__(f"failed to send to {chat_id}: {cause}")


@dataclass
class DeliveryReport:
    delivered: List[Any] = field(default_factory=list)
    failed: List[DeliveryError] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.delivered) + len(self.failed)


class Notifier:
    def __init__(
        self,
        transport: MessageTransport,
        registry: SubscriberRegistry,
        *,
        max_workers: int = config.NOTIFY_MAX_WORKERS,
    ) -> None:
        self.transport = transport
        self.registry = registry
        self.max_workers = max(1, max_workers)

    def _deliver(self, sub: Subscriber, message: str) -> DeliveryError | None:
        try:
            self.transport.send_message(sub.id, message)
        except Exception as e:
            err = DeliveryError(sub.id, e)
            logger.warning("%s", err)
            return err
        return None

    def notify_all(self, message: str) -> DeliveryReport:
        report = DeliveryReport()
        subscribers = self.registry.list_subscribers()
        if not subscribers:
            logger.info("No registered chats yet. Send /start to the bot first.")
            return report

        workers = min(self.max_workers, len(subscribers))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="notify") as pool:
            outcomes = list(pool.map(lambda s: (s, self._deliver(s, message)), subscribers))

        for sub, err in outcomes:
            if err is None:
                report.delivered.append(sub.id)
            else:
                report.failed.append(err)

        logger.info(
            "Broadcast delivered to %d/%d chats", len(report.delivered), len(subscribers)
        )
        return report


__all__ = ["Notifier", "DeliveryReport", "DeliveryError", "MessageTransport"]
