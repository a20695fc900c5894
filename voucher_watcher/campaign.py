"""Grivy campaign client.

Fetches the public ``getCampaign`` document for one campaign and turns it
into a :class:`CampaignResult`.  The endpoint is called without any bearer
token; only the public code, the analytics client id and the domain tag
identify the request.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional
from urllib.parse import urlparse

import requests

from . import config
from .utils import (MalformedResponseError, UpstreamError, get_http_session,
                    retryable_request)

logger = logging.getLogger(__name__)

BODY_EXCERPT_CHARS = 500


@dataclass
class StoreAvailability:
    name: str
    available: bool

    def to_dict(self) -> dict:
        return {"name": self.name, "available": self.available}


@dataclass
class CampaignResult:
    campaign_active: bool
    available: bool
    per_store: List[StoreAvailability] = field(default_factory=list)
    reason: str = "ok"  # "ok" | "no_result"

    @property
    def available_stores(self) -> List[str]:
        return [s.name for s in self.per_store if s.available]


def _post(session: requests.Session, url: str, **kwargs: Any) -> requests.Response:
    return session.post(url, **kwargs)


def _origin_of(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


class CampaignClient:
    """Issues the availability request against the campaign endpoint."""

    def __init__(
        self,
        *,
        ga_cid: str,
        domain: str,
        api_url: str = config.API_URL,
        public_code: str = config.CAMPAIGN_PUBLIC_CODE,
        storefront_url: str = config.TARGET_URL,
        timeout: float = config.HTTP_TIMEOUT_SECONDS,
        attempts: int = config.FETCH_ATTEMPTS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.ga_cid = str(ga_cid)
        self.domain = str(domain)
        self.api_url = api_url
        self.public_code = public_code
        self.origin = _origin_of(storefront_url)
        self.timeout = timeout
        self.session = session or get_http_session()
        self._post = retryable_request(_post, attempts=attempts)

    def build_payload(self) -> dict:
        return {
            "data": {
                "publicCode": self.public_code,
                "gaCid": self.ga_cid,
                "domain": self.domain,
            }
        }

    def build_headers(self) -> dict:
        # Deliberately no Authorization header.
        return {
            "Origin": self.origin,
            "Referer": self.origin + "/",
        }

    def fetch_campaign(self) -> Any:
        """POST the campaign request and return the decoded JSON document.

        Raises :class:`UpstreamError` for transport failures and non-2xx
        responses, and :class:`MalformedResponseError` when a 2xx body
        cannot be decoded.
        """
        try:
            resp = self._post(
                self.session,
                self.api_url,
                json=self.build_payload(),
                headers=self.build_headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UpstreamError(None, type(e).__name__, str(e)[:BODY_EXCERPT_CHARS]) from e

        # Read as text first so a broken 200 body surfaces as a parse error.
        text = resp.text or ""
        if not resp.ok:
            raise UpstreamError(resp.status_code, resp.reason or "", text[:BODY_EXCERPT_CHARS])

        try:
            return json.loads(text)
        except ValueError as e:
            raise MalformedResponseError(
                resp.status_code, "invalid JSON body", text[:BODY_EXCERPT_CHARS]
            ) from e


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def parse_availability(raw: Any) -> CampaignResult:
    """Extract campaign availability from a raw ``getCampaign`` response.

    Never raises: absent or oddly-typed fields count as absent, which makes
    the campaign inactive and the store unavailable.
    """
    result = _as_dict(raw).get("result")
    if result is None:
        return CampaignResult(campaign_active=False, available=False, per_store=[], reason="no_result")
    result = _as_dict(result)

    campaign_active = (
        result.get("campaign_status") == "active"
        and result.get("expired") is False
        and result.get("outdated") is False
    )

    options = _as_dict(result.get("campaign_options")).get("options")
    if not isinstance(options, list):
        options = []

    per_store: List[StoreAvailability] = []
    for opt in options:
        opt = _as_dict(opt)
        name = opt.get("options_name")
        per_store.append(
            StoreAvailability(
                name="" if name is None else str(name),
                # coupons_finished=False means vouchers remain
                available=opt.get("coupons_finished") is False,
            )
        )

    any_available = any(s.available for s in per_store)
    return CampaignResult(
        campaign_active=campaign_active,
        available=campaign_active and any_available,
        per_store=per_store,
        reason="ok",
    )


def format_store_line(per_store: Optional[List[StoreAvailability]]) -> str:
    if not per_store:
        return "-"
    return " | ".join(f"{s.name}={'AVAILABLE' if s.available else 'SOLD OUT'}" for s in per_store)


__all__ = [
    "CampaignClient",
    "CampaignResult",
    "StoreAvailability",
    "parse_availability",
    "format_store_line",
]
