import threading

import pytest

from voucher_watcher.db import StateStore, SubscriberRegistry
from voucher_watcher.monitor import AvailabilityMonitor
from voucher_watcher.notifier import Notifier

TARGET_URL = "https://shop.example.com/c/promo-1"


def campaign_doc(*, stores, status="active", expired=False, outdated=False):
    """A getCampaign-shaped response; ``stores`` maps name -> coupons_finished."""
    return {
        "result": {
            "campaign_status": status,
            "expired": expired,
            "outdated": outdated,
            "campaign_options": {
                "options": [
                    {"options_name": name, "coupons_finished": finished}
                    for name, finished in stores.items()
                ]
            },
        }
    }


class FakeTransport:
    def __init__(self, failing=()):
        self.failing = set(failing)
        self.sent = []
        self._lock = threading.Lock()

    def send_message(self, chat_id, text):
        if chat_id in self.failing:
            raise RuntimeError("Forbidden: bot was blocked by the user")
        with self._lock:
            self.sent.append((chat_id, text))


class FakeClient:
    """Returns queued documents; queued exceptions are raised instead."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = 0

    def fetch_campaign(self):
        self.calls += 1
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture()
def registry(tmp_path):
    return SubscriberRegistry.at(tmp_path / "chats.json")


@pytest.fixture()
def state_store(tmp_path):
    return StateStore.at(tmp_path / "state.json")


@pytest.fixture()
def transport():
    return FakeTransport()


@pytest.fixture()
def notifier(transport, registry):
    return Notifier(transport, registry, max_workers=2)


@pytest.fixture()
def subscribed(registry):
    registry.register_if_absent(101, "alice", "private")
    registry.register_if_absent(-202, "deals-group", "group")
    return registry


@pytest.fixture()
def make_monitor(state_store, notifier):
    def _make(*responses):
        client = FakeClient(*responses)
        return AvailabilityMonitor(client, state_store, notifier, target_url=TARGET_URL)

    return _make
