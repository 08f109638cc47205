from datetime import date, datetime

import pytest
import requests

import config
import position_service
from ephemeris import Body, Position, positions_at
from exceptions import PositionServiceError
from position_service import RemotePositionProvider, fetch_positions


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        return self._payload


@pytest.fixture
def service_url(monkeypatch):
    monkeypatch.setattr(config, "POSITION_SERVICE_URL", "http://positions.test/v1")
    return config.POSITION_SERVICE_URL


def _fake_post(response, calls=None):
    def post(url, json=None, timeout=None, **kwargs):
        if calls is not None:
            calls.append({"url": url, "json": json, "timeout": timeout})
        if isinstance(response, Exception):
            raise response
        return response
    return post


def test_fetch_positions_parses_and_drops_unknown_bodies(service_url, monkeypatch):
    calls = []
    payload = {"positions": [
        {"planet": "Sun", "longitude": 370.0},
        {"planet": "Chiron", "longitude": 12.0},
        {"planet": "moon", "longitude": 45.5, "latitude": 5.1, "distance": 0.0026},
    ]}
    monkeypatch.setattr(position_service.requests, "post", _fake_post(FakeResponse(payload), calls))

    positions = fetch_positions(datetime(1990, 6, 15, 14, 30), 40.7, -74.0, "America/New_York")

    assert positions == [
        Position(Body.SUN, 10.0, 0.0, 1.0),
        Position(Body.MOON, 45.5, 5.1, 0.0026),
    ]
    assert calls[0]["url"] == "http://positions.test/v1/chart"
    assert calls[0]["json"] == {
        "date": "1990-06-15",
        "time": "14:30:00",
        "latitude": 40.7,
        "longitude": -74.0,
        "timezone": "America/New_York",
    }
    assert calls[0]["timeout"] == config.POSITION_SERVICE_TIMEOUT


@pytest.mark.parametrize("response", [
    FakeResponse({}, status_code=503),
    FakeResponse({"unexpected": []}),
    FakeResponse({"positions": [{"planet": "sun"}]}),
    requests.ConnectionError("connection refused"),
    requests.Timeout("read timed out"),
])
def test_fetch_positions_failures_raise_service_error(service_url, monkeypatch, response):
    monkeypatch.setattr(position_service.requests, "post", _fake_post(response))
    with pytest.raises(PositionServiceError):
        fetch_positions(datetime(2025, 1, 1), 0.0, 0.0)


def test_fetch_positions_requires_configuration(monkeypatch):
    monkeypatch.setattr(config, "POSITION_SERVICE_URL", "")
    with pytest.raises(PositionServiceError):
        fetch_positions(datetime(2025, 1, 1), 0.0, 0.0)


def test_provider_falls_back_to_local_model(service_url, monkeypatch):
    monkeypatch.setattr(position_service.requests, "post",
                        _fake_post(requests.ConnectionError("down")))
    provider = RemotePositionProvider(51.5, -0.1, "Asia/Tokyo")
    instant = datetime(2025, 3, 1)

    positions = provider(instant, [Body.SUN, Body.MOON])

    assert positions == positions_at(instant, [Body.SUN, Body.MOON], -540)
    assert provider.degraded
    assert provider.degraded_dates == [date(2025, 3, 1)]


def test_provider_orders_by_request_and_fills_missing(service_url, monkeypatch):
    payload = {"positions": [
        {"planet": "moon", "longitude": 100.0},
        {"planet": "sun", "longitude": 200.0},
    ]}
    monkeypatch.setattr(position_service.requests, "post", _fake_post(FakeResponse(payload)))
    provider = RemotePositionProvider(0.0, 0.0)
    instant = datetime(2025, 3, 1)

    positions = provider(instant, [Body.SUN, Body.MARS, Body.MOON])

    assert [p.body for p in positions] == [Body.SUN, Body.MARS, Body.MOON]
    assert positions[0].longitude == 200.0
    assert positions[1] == positions_at(instant, [Body.MARS])[0]
    assert positions[2].longitude == 100.0
    assert not provider.degraded


def test_provider_with_no_bodies_skips_service(service_url, monkeypatch):
    calls = []
    monkeypatch.setattr(position_service.requests, "post", _fake_post(FakeResponse({}), calls))
    assert RemotePositionProvider(0.0, 0.0)(datetime(2025, 1, 1), []) == []
    assert calls == []
