import json

import pytest
import requests

from voucher_watcher.campaign import (CampaignClient, StoreAvailability,
                                      format_store_line, parse_availability)
from voucher_watcher.utils import MalformedResponseError, UpstreamError

from conftest import campaign_doc


class FakeResponse:
    def __init__(self, status_code=200, text="", reason="OK"):
        self.status_code = status_code
        self.text = text
        self.reason = reason

    @property
    def ok(self):
        return 200 <= self.status_code < 400


class FakeSession:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        item = self.outcomes.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def make_client(session, attempts=1):
    return CampaignClient(
        ga_cid="GA1.1.123.456",
        domain="freshbreak_test",
        api_url="https://api.example.com/getCampaign",
        public_code="promo-1",
        storefront_url="https://shop.example.com/c/promo-1",
        attempts=attempts,
        session=session,
    )


def test_parse_empty_document_has_no_result():
    r = parse_availability({})
    assert r.campaign_active is False
    assert r.available is False
    assert r.per_store == []
    assert r.reason == "no_result"


@pytest.mark.parametrize("raw", [None, [], "oops", 42, {"result": None}])
def test_parse_is_total_over_junk(raw):
    r = parse_availability(raw)
    assert r.available is False
    assert r.reason == "no_result"


@pytest.mark.parametrize("result", [{}, [], "x", 0, False])
def test_present_but_empty_result_is_ok_and_inactive(result):
    r = parse_availability({"result": result})
    assert r.reason == "ok"
    assert r.campaign_active is False
    assert r.available is False
    assert r.per_store == []


def test_store_inversion():
    r = parse_availability(campaign_doc(stores={"StoreA": False, "StoreB": True}))
    assert r.per_store == [
        StoreAvailability(name="StoreA", available=True),
        StoreAvailability(name="StoreB", available=False),
    ]
    assert r.available is True
    assert r.available_stores == ["StoreA"]


def test_all_stores_finished_is_unavailable():
    r = parse_availability(campaign_doc(stores={"StoreA": True}))
    assert r.campaign_active is True
    assert r.available is False
    assert r.reason == "ok"


@pytest.mark.parametrize(
    "overrides",
    [
        {"status": "ended"},
        {"expired": True},
        {"outdated": True},
        {"expired": None},
    ],
)
def test_inactive_campaign_is_never_available(overrides):
    r = parse_availability(campaign_doc(stores={"StoreA": False}, **overrides))
    assert r.campaign_active is False
    assert r.available is False
    assert r.per_store[0].available is True


def test_missing_nested_fields_are_absent():
    doc = {"result": {"campaign_status": "active", "expired": False, "outdated": False,
                      "campaign_options": {"options": [{"options_name": "X"}, "junk"]}}}
    r = parse_availability(doc)
    assert r.campaign_active is True
    assert [s.available for s in r.per_store] == [False, False]
    assert r.available is False


def test_format_store_line():
    assert format_store_line([]) == "-"
    assert format_store_line(None) == "-"
    line = format_store_line([StoreAvailability("A", True), StoreAvailability("B", False)])
    assert line == "A=AVAILABLE | B=SOLD OUT"


def test_fetch_sends_payload_without_authorization():
    session = FakeSession(FakeResponse(200, json.dumps(campaign_doc(stores={"A": False}))))
    client = make_client(session)

    doc = client.fetch_campaign()

    assert parse_availability(doc).available is True
    url, kwargs = session.calls[0]
    assert url == "https://api.example.com/getCampaign"
    assert kwargs["json"] == {
        "data": {"publicCode": "promo-1", "gaCid": "GA1.1.123.456", "domain": "freshbreak_test"}
    }
    assert kwargs["headers"]["Origin"] == "https://shop.example.com"
    assert kwargs["headers"]["Referer"] == "https://shop.example.com/"
    assert "Authorization" not in kwargs["headers"]


def test_fetch_non_2xx_raises_upstream_error():
    session = FakeSession(FakeResponse(429, "slow down" * 100, reason="Too Many Requests"))
    with pytest.raises(UpstreamError) as exc:
        make_client(session).fetch_campaign()
    assert exc.value.status_code == 429
    assert exc.value.status_text == "Too Many Requests"
    assert len(exc.value.body_excerpt) == 500


def test_fetch_malformed_200_raises_parse_error():
    session = FakeSession(FakeResponse(200, "<html>maintenance</html>"))
    with pytest.raises(MalformedResponseError) as exc:
        make_client(session).fetch_campaign()
    assert exc.value.status_code == 200


def test_http_errors_are_not_retried():
    session = FakeSession(FakeResponse(503, "down", reason="Service Unavailable"))
    with pytest.raises(UpstreamError):
        make_client(session, attempts=3).fetch_campaign()
    assert len(session.calls) == 1


def test_connection_error_is_retried_then_surfaced():
    session = FakeSession(requests.ConnectionError("reset"), requests.ConnectionError("reset"))
    with pytest.raises(UpstreamError) as exc:
        make_client(session, attempts=2).fetch_campaign()
    assert exc.value.status_code is None
    assert len(session.calls) == 2


def test_connection_error_recovers_within_one_poll():
    ok = FakeResponse(200, json.dumps({}))
    session = FakeSession(requests.Timeout("slow"), ok)
    assert make_client(session, attempts=2).fetch_campaign() == {}
