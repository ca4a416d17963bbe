"""天气查询后端（Open-Meteo，无需 API key）。

先用地名解析接口拿到经纬度，再查询当前气温与天气代码。
"""

from typing import Any, Dict

import httpx

from agent_friend.config.settings import Settings
from agent_friend.domain.exceptions import ToolError
from agent_friend.tools.definitions import FailureReason

# WMO weather interpretation codes
WEATHER_CODES: Dict[int, str] = {
    0: "clear sky",
    1: "mainly clear",
    2: "partly cloudy",
    3: "overcast",
    45: "fog",
    48: "depositing rime fog",
    51: "light drizzle",
    53: "moderate drizzle",
    55: "dense drizzle",
    61: "slight rain",
    63: "moderate rain",
    65: "heavy rain",
    71: "slight snow",
    73: "moderate snow",
    75: "heavy snow",
    80: "rain showers",
    81: "heavy rain showers",
    82: "violent rain showers",
    95: "thunderstorm",
    96: "thunderstorm with hail",
    99: "thunderstorm with heavy hail",
}


class WeatherBackend:
    def __init__(self, cfg: Settings):
        self._geocoding_url = cfg.weather_geocoding_url
        self._forecast_url = cfg.weather_forecast_url
        self._timeout = cfg.http_timeout

    def lookup(self, location: str) -> Dict[str, Any]:
        location = location.strip()
        if not location:
            raise ToolError(FailureReason.INVALID_ARGUMENTS, "location must not be empty")
        try:
            with httpx.Client(timeout=self._timeout) as client:
                geo = self._get_json(client, self._geocoding_url, {"name": location, "count": 1})
                results = geo.get("results") or []
                if not isinstance(results, list):
                    raise ToolError(FailureReason.UPSTREAM_UNAVAILABLE, "geocoding returned unexpected results")
                if not results:
                    raise ToolError(FailureReason.LOCATION_NOT_FOUND, f"no location matches {location!r}")
                place = results[0]
                if not isinstance(place, dict) or place.get("latitude") is None or place.get("longitude") is None:
                    raise ToolError(FailureReason.UPSTREAM_UNAVAILABLE, f"geocoding result for {location!r} has no coordinates")
                forecast = self._get_json(
                    client,
                    self._forecast_url,
                    {
                        "latitude": place["latitude"],
                        "longitude": place["longitude"],
                        "current": "temperature_2m,weather_code",
                    },
                )
        except httpx.RequestError as e:
            raise ToolError(FailureReason.UPSTREAM_UNAVAILABLE, f"weather service unreachable: {e}") from e

        current = forecast.get("current") or {}
        units = forecast.get("current_units") or {}
        if not isinstance(units, dict):
            units = {}
        if not isinstance(current, dict) or "temperature_2m" not in current:
            raise ToolError(FailureReason.UPSTREAM_UNAVAILABLE, "weather service returned no current conditions")
        code = current.get("weather_code")
        return {
            "location": ", ".join(str(p) for p in (place.get("name"), place.get("country")) if p),
            "temperature": current["temperature_2m"],
            "unit": units.get("temperature_2m", "°C"),
            "conditions": WEATHER_CODES.get(code, "unknown") if isinstance(code, int) else "unknown",
        }

    @staticmethod
    def _get_json(client: httpx.Client, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        resp = client.get(url, params=params)
        if resp.status_code >= 400:
            raise ToolError(FailureReason.UPSTREAM_UNAVAILABLE, f"weather service returned HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError:
            raise ToolError(FailureReason.UPSTREAM_UNAVAILABLE, "weather service returned invalid JSON")
        if not isinstance(data, dict):
            raise ToolError(FailureReason.UPSTREAM_UNAVAILABLE, "weather service returned unexpected payload")
        return data
