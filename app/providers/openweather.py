"""
OpenWeather current-conditions provider.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from .base import Provider, ProviderError
from ..config import settings


class WeatherError(ProviderError):
    pass


class OpenWeatherProvider(Provider):
    name = "openweather"
    timeout_s = 10

    def __init__(self, api_key: Optional[str] = None, base_url: str = "https://api.openweathermap.org") -> None:
        self.api_key = api_key if api_key is not None else settings.openweather_api_key
        self.base_url = base_url.rstrip("/")

    async def ready(self) -> bool:
        return bool(self.api_key)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "disabled", "reason": "OpenWeather API key not configured"}
        return {"status": "healthy"}

    async def current(self, location: str) -> Dict[str, Any]:
        if not self.api_key:
            raise WeatherError("OpenWeather API key not configured")

        async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout_s) as client:
            response = await client.get(
                "/data/2.5/weather",
                params={"q": location, "appid": self.api_key, "units": "metric"},
            )

        if response.status_code == 404:
            raise WeatherError(
                f'Location "{location}" not found. Please check the spelling or try a more specific '
                f'city name (e.g., "Hyderabad, India" instead of "hyd")'
            )
        if response.status_code == 401:
            raise WeatherError("Weather API authentication failed. Please check the API key configuration.")
        if response.is_error:
            raise WeatherError(f"Weather API error: {response.status_code} {response.reason_phrase}")

        data = response.json()
        return {
            "location": data.get("name"),
            "country": (data.get("sys") or {}).get("country"),
            "temperature": data["main"]["temp"],
            "feelsLike": data["main"].get("feels_like"),
            "humidity": data["main"].get("humidity"),
            "description": (data.get("weather") or [{}])[0].get("description"),
            "windSpeed": (data.get("wind") or {}).get("speed"),
            "pressure": data["main"].get("pressure"),
        }


_weather_provider: Optional[OpenWeatherProvider] = None


def get_weather_provider() -> OpenWeatherProvider:
    global _weather_provider
    if _weather_provider is None:
        _weather_provider = OpenWeatherProvider()
    return _weather_provider
