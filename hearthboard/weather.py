import logging
import time
from typing import Callable, Optional
from urllib.parse import quote

import httpx

from . import config

logger = logging.getLogger(__name__)

WTTR_BASE = "https://wttr.in"
DEFAULT_ICON = "\U0001F324\ufe0f"

# wttr.in condition codes, checked in order. The rain ranges come first, so
# thunder codes and fog 248/260 resolve to rain.
ICON_TABLE = [
    (lambda c: c == 113, "\u2600\ufe0f"),
    (lambda c: c == 116, "\u26c5"),
    (lambda c: c in (119, 122), "\u2601\ufe0f"),
    (lambda c: 176 <= c <= 263, "\U0001F327\ufe0f"),
    (lambda c: 266 <= c <= 317, "\U0001F327\ufe0f"),
    (lambda c: 320 <= c <= 395, "\u2744\ufe0f"),
    (lambda c: 200 <= c <= 232, "\u26c8\ufe0f"),
    (lambda c: c in (143, 248, 260), "\U0001F32B\ufe0f"),
]


class WeatherError(Exception):
    pass


def get_weather_icon(code) -> str:
    try:
        code_num = int(str(code).strip())
    except (TypeError, ValueError):
        return DEFAULT_ICON
    for matches, icon in ICON_TABLE:
        if matches(code_num):
            return icon
    return DEFAULT_ICON


def weather_url(location: str) -> str:
    if not location or location == "auto":
        return f"{WTTR_BASE}/?format=j1"
    return f"{WTTR_BASE}/{quote(location, safe='')}?format=j1"


def summarize(data: dict) -> dict:
    try:
        current = data["current_condition"][0]
        area = data["nearest_area"][0]
        return {
            "temp": int(current["temp_F"]),
            "tempC": int(current["temp_C"]),
            "condition": current["weatherDesc"][0]["value"],
            "icon": get_weather_icon(current.get("weatherCode")),
            "location": area["areaName"][0]["value"],
        }
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        raise WeatherError("Unexpected weather payload") from exc


class WeatherCache:
    """Per-location cache of weather summaries with a fixed TTL."""

    def __init__(
        self,
        ttl_seconds: float = config.WEATHER_CACHE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        # location -> (stored_at, summary)
        self._entries: dict[str, tuple[float, dict]] = {}

    def get(self, location: str) -> Optional[dict]:
        entry = self._entries.get(location)
        if entry is None:
            return None
        stored_at, summary = entry
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[location]
            return None
        return summary

    def set(self, location: str, summary: dict) -> None:
        if self.ttl_seconds <= 0:
            return
        self._entries[location] = (self._clock(), summary)

    def clear(self) -> None:
        self._entries.clear()


async def fetch_weather(
    client: httpx.AsyncClient, location: str, cache: Optional[WeatherCache] = None
) -> dict:
    key = (location or "auto").strip().lower()
    if cache is not None:
        cached = cache.get(key)
        if cached is not None:
            return cached
    try:
        response = await client.get(weather_url(location))
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Weather lookup failed for %r: %s", location, exc)
        raise WeatherError("Weather API error") from exc
    summary = summarize(data)
    if cache is not None:
        cache.set(key, summary)
    return summary
