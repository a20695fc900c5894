"""Availability monitor.

Compares each poll to the stored state and notifies only on the
unavailable -> available edge.  Going back to unavailable, or staying in
either state, is silent.  A failed poll never touches the stored state.
"""
from __future__ import annotations

import logging
from typing import Optional

from . import config
from .campaign import CampaignClient, CampaignResult, format_store_line, parse_availability
from .db import StateStore
from .notifier import Notifier
from .utils import MalformedResponseError, UpstreamError, utc_now_iso

logger = logging.getLogger(__name__)


def diagnose_upstream_error(err: UpstreamError) -> str:
    """Best-guess hint for a failed fetch, chosen by status band."""
    if isinstance(err, MalformedResponseError):
        return "The API answered with something that is not JSON (endpoint or payload may have changed)."
    code = err.status_code
    if code is None:
        return "The API could not be reached (network problem or timeout)."
    if code == 429:
        return "429: checking too often (raise INTERVAL_MS)."
    if 400 <= code < 500:
        return f"{code}: GA_CID / DOMAIN / payload do not match what the API expects."
    if code >= 500:
        return f"{code}: the Grivy server is having trouble (try again later)."
    return f"{code}: unexpected response status."


def build_available_message(result: CampaignResult, target_url: str) -> str:
    return (
        "🚨 VOUCHER AVAILABLE!\n"
        f"Stores: {', '.join(result.available_stores)}\n"
        f"Link: {target_url}"
    )


def build_status_message(result: CampaignResult, last_check_at: Optional[str]) -> str:
    return (
        "📌 CURRENT STATUS\n"
        f"Campaign active: {str(result.campaign_active).lower()}\n"
        f"Available: {str(result.available).lower()}\n"
        f"Stores: {format_store_line(result.per_store)}\n"
        f"Last check: {last_check_at or '-'}"
    )


def build_failure_message(err: UpstreamError) -> str:
    return (
        "⚠️ Failed to check the API.\n"
        f"Error: {err}\n\n"
        f"Hint: {diagnose_upstream_error(err)}"
    )


class AvailabilityMonitor:
    def __init__(
        self,
        client: CampaignClient,
        state_store: StateStore,
        notifier: Notifier,
        *,
        target_url: str = config.TARGET_URL,
    ) -> None:
        self.client = client
        self.state_store = state_store
        self.notifier = notifier
        self.target_url = target_url

    def check_once(self, manual: bool = False) -> Optional[CampaignResult]:
        """Run one poll. Returns the parsed result, or None when the fetch failed."""
        try:
            raw = self.client.fetch_campaign()
        except UpstreamError as e:
            logger.warning("FetchCampaign error: %s", e)
            if manual:
                self.notifier.notify_all(build_failure_message(e))
            return None

        result = parse_availability(raw)
        logger.info(
            "active=%s available=%s stores=%s",
            result.campaign_active,
            result.available,
            format_store_line(result.per_store),
        )

        with self.state_store.lock:
            state = self.state_store.load()
            rising_edge = result.available and not state.last_available

            state.last_available = result.available
            state.last_check_at = utc_now_iso()
            state.last_stores = list(result.per_store)
            self.state_store.save(state)

        if rising_edge:
            logger.info("Vouchers became available: %s", ", ".join(result.available_stores))
            self.notifier.notify_all(build_available_message(result, self.target_url))

        if manual:
            self.notifier.notify_all(build_status_message(result, state.last_check_at))

        return result

    def reset(self) -> bool:
        """Force the stored state back to unavailable without notifying.

        Returns True if the state changed; an already-unavailable state is
        left untouched on disk.
        """
        with self.state_store.lock:
            state = self.state_store.load()
            if not state.last_available:
                logger.info("Reset requested; state already unavailable")
                return False
            state.last_available = False
            self.state_store.save(state)
        logger.info("State reset; next availability will notify again")
        return True


__all__ = [
    "AvailabilityMonitor",
    "diagnose_upstream_error",
    "build_available_message",
    "build_status_message",
    "build_failure_message",
]
