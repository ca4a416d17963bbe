from datetime import datetime, timezone

import httpx
import pytest

from agent_friend.domain.exceptions import ToolError
from agent_friend.tools.clock import ClockBackend
from agent_friend.tools.definitions import FailureReason, ToolCall, ToolName
from agent_friend.tools.executor import ToolExecutor, default_tool_defs
from agent_friend.tools.weather import WeatherBackend


class SettingsStub:
    weather_geocoding_url = "https://geo.test/search"
    weather_forecast_url = "https://wx.test/forecast"
    http_timeout = 1.0


class FakeWeather:
    def __init__(self):
        self.calls = []

    def lookup(self, location):
        self.calls.append(location)
        if location == "Atlantis":
            raise ToolError(FailureReason.LOCATION_NOT_FOUND, "no location matches 'Atlantis'")
        return {"location": location, "temperature": 30, "unit": "°C", "conditions": "clear sky"}


class FakeWallet:
    def __init__(self):
        self.calls = []

    def generate_wallet(self, keys=None):
        self.calls.append(("generate", keys))
        return {"address": "0x" + "ab" * 20, "note": "generated", "key_retained": keys is not None}

    def get_balance(self, address):
        self.calls.append(("balance", address))
        raise RuntimeError("backend bug")

    def send(self, sender, recipient, amount, keys):
        self.calls.append(("send", sender, recipient, amount))
        return {"tx_hash": "0x" + "11" * 32}


def _executor():
    return ToolExecutor(weather=FakeWeather(), clock=ClockBackend(), wallet=FakeWallet())


def test_tool_defs_cover_closed_tool_set():
    assert {d.name for d in default_tool_defs()} == {t.value for t in ToolName}
    assert {d.name for d in _executor().tool_defs} == {t.value for t in ToolName}


def test_dispatch_unknown_tool_is_failure_not_exception():
    outcome = _executor().dispatch("teleport", {"where": "mars"})
    assert not outcome.ok
    assert outcome.reason is FailureReason.UNKNOWN_TOOL


def test_dispatch_validates_arguments_before_invoking_backend():
    te = _executor()
    missing = te.dispatch("weather_lookup", {})
    assert missing.reason is FailureReason.INVALID_ARGUMENTS
    extra = te.dispatch("wallet_generate", {"seed": "1234"})
    assert extra.reason is FailureReason.INVALID_ARGUMENTS
    wrong_type = te.dispatch("wallet_send", {"from": "0x1", "to": "0x2", "amount": [1]})
    assert wrong_type.reason is FailureReason.INVALID_ARGUMENTS
    not_object = te.dispatch("wallet_balance", "0x1")
    assert not_object.reason is FailureReason.INVALID_ARGUMENTS
    assert te._weather.calls == []
    assert te._wallet.calls == []


def test_dispatch_backend_tool_error_becomes_failure():
    outcome = _executor().dispatch("weather_lookup", {"location": "Atlantis"})
    assert outcome.reason is FailureReason.LOCATION_NOT_FOUND
    assert "Atlantis" in outcome.message


def test_dispatch_unexpected_backend_error_is_contained():
    outcome = _executor().dispatch("wallet_balance", {"address": "0x1"})
    assert outcome.reason is FailureReason.INTERNAL_ERROR
    assert "RuntimeError" in outcome.message


def test_execute_passes_key_ring_and_wraps_result():
    te = _executor()
    keys = object()
    result = te.execute(ToolCall(id="tu_9", name="wallet_generate", arguments={}), keys)
    assert result.call_id == "tu_9"
    assert result.tool_name == "wallet_generate"
    assert result.outcome.ok
    assert result.outcome.payload["key_retained"] is True
    assert te._wallet.calls == [("generate", keys)]


def test_clock_backend_with_timezone():
    fixed = datetime(2024, 5, 1, 12, 30, 0, tzinfo=timezone.utc)
    clock = ClockBackend(now=lambda tz: fixed.astimezone(tz) if tz else fixed)
    res = clock.lookup("UTC")
    assert res["time"] == "2024-05-01 12:30:00"
    assert res["timezone"] == "UTC"
    for bad in ("Mars/Olympus_Mons", "America"):
        with pytest.raises(ToolError) as exc:
            clock.lookup(bad)
        assert exc.value.reason is FailureReason.UNKNOWN_TIMEZONE


def test_dispatch_time_lookup_with_timezone_directory_is_unknown_timezone():
    outcome = _executor().dispatch("time_lookup", {"timezone": "America"})
    assert outcome.reason is FailureReason.UNKNOWN_TIMEZONE


def _fake_http(monkeypatch, routes, raise_exc=None):
    class Resp:
        def __init__(self, status_code, body):
            self.status_code = status_code
            self._body = body

        def json(self):
            return self._body

    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def get(self, url, params=None, **_):
            if raise_exc is not None:
                raise raise_exc
            status, body = routes[url]
            return Resp(status, body)

    monkeypatch.setattr("httpx.Client", Client)


def test_weather_backend_lookup(monkeypatch):
    _fake_http(
        monkeypatch,
        {
            "https://geo.test/search": (200, {"results": [{"name": "Cairo", "country": "Egypt", "latitude": 30.0, "longitude": 31.2}]}),
            "https://wx.test/forecast": (
                200,
                {"current": {"temperature_2m": 30.4, "weather_code": 0}, "current_units": {"temperature_2m": "°C"}},
            ),
        },
    )
    res = WeatherBackend(SettingsStub()).lookup("Cairo")
    assert res == {"location": "Cairo, Egypt", "temperature": 30.4, "unit": "°C", "conditions": "clear sky"}


def test_weather_backend_location_not_found(monkeypatch):
    _fake_http(monkeypatch, {"https://geo.test/search": (200, {"generationtime_ms": 0.5})})
    with pytest.raises(ToolError) as exc:
        WeatherBackend(SettingsStub()).lookup("Atlantis")
    assert exc.value.reason is FailureReason.LOCATION_NOT_FOUND


def test_weather_backend_upstream_unavailable(monkeypatch):
    _fake_http(monkeypatch, {}, raise_exc=httpx.ConnectError("down"))
    with pytest.raises(ToolError) as exc:
        WeatherBackend(SettingsStub()).lookup("Cairo")
    assert exc.value.reason is FailureReason.UPSTREAM_UNAVAILABLE

    _fake_http(monkeypatch, {"https://geo.test/search": (503, {})})
    with pytest.raises(ToolError) as exc:
        WeatherBackend(SettingsStub()).lookup("Cairo")
    assert exc.value.reason is FailureReason.UPSTREAM_UNAVAILABLE


def test_weather_backend_geocoding_without_coordinates(monkeypatch):
    _fake_http(monkeypatch, {"https://geo.test/search": (200, {"results": [{"name": "Cairo", "country": "Egypt"}]})})
    with pytest.raises(ToolError) as exc:
        WeatherBackend(SettingsStub()).lookup("Cairo")
    assert exc.value.reason is FailureReason.UPSTREAM_UNAVAILABLE


def test_weather_backend_unexpected_forecast_payload(monkeypatch):
    _fake_http(
        monkeypatch,
        {
            "https://geo.test/search": (200, {"results": [{"name": "Cairo", "latitude": 30.0, "longitude": 31.2}]}),
            "https://wx.test/forecast": (200, {"current": "sunny"}),
        },
    )
    with pytest.raises(ToolError) as exc:
        WeatherBackend(SettingsStub()).lookup("Cairo")
    assert exc.value.reason is FailureReason.UPSTREAM_UNAVAILABLE
