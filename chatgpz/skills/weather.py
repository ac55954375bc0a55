"""Weather skill using Open-Meteo (free, no API key required)"""

import logging

import httpx

from ..core.errors import FetchError, InvalidArguments, LocationNotFound

logger = logging.getLogger("chatgpz.skills.weather")

GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

CURRENT_FIELDS = ",".join([
    "temperature_2m",
    "relative_humidity_2m",
    "apparent_temperature",
    "is_day",
    "weather_code",
    "wind_speed_10m",
    "wind_direction_10m",
])

WEATHER_CODES = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Foggy",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    56: "Light freezing drizzle",
    57: "Dense freezing drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    66: "Light freezing rain",
    67: "Heavy freezing rain",
    71: "Slight snow",
    73: "Moderate snow",
    75: "Heavy snow",
    77: "Snow grains",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}

COMPASS = ["N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
           "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW"]


def wind_direction(degrees: float) -> str:
    """Map wind bearing in degrees to a 16-point compass label."""
    return COMPASS[int(degrees / 22.5 + 0.5) % 16]


async def _get_json(ctx, url: str, params: dict, what: str) -> dict:
    try:
        response = await ctx.http.get(url, params=params, timeout=10.0)
    except httpx.HTTPError as e:
        raise FetchError(f"Failed to {what}: {e}")
    if not response.is_success:
        raise FetchError(f"Failed to {what}: HTTP {response.status_code}")
    return response.json()


async def get_weather(ctx, location: str, units: str = "metric") -> str:
    """
    Get current weather information for a location. Provides temperature, conditions, humidity, wind speed, and more.

    Args:
        location: City name or location (e.g., "New York", "London, UK", "Tokyo, Japan")
        units: Unit system: "metric" (Celsius, km/h) or "imperial" (Fahrenheit, mph). Default: metric
    """
    location = location.strip()
    if not location:
        raise InvalidArguments("No location provided")
    imperial = units == "imperial"

    geo = await _get_json(ctx, GEOCODING_URL, {
        "name": location, "count": 1, "language": "en", "format": "json",
    }, "geocode location")
    results = geo.get("results") or []
    if not results:
        raise LocationNotFound(f'Location not found: "{location}"')
    place = results[0]

    data = await _get_json(ctx, FORECAST_URL, {
        "latitude": place["latitude"],
        "longitude": place["longitude"],
        "current": CURRENT_FIELDS,
        "temperature_unit": "fahrenheit" if imperial else "celsius",
        "wind_speed_unit": "mph" if imperial else "kmh",
    }, "fetch weather data")
    current = data.get("current") or {}

    temp_symbol = "°F" if imperial else "°C"
    speed_symbol = "mph" if imperial else "km/h"
    condition = WEATHER_CODES.get(current.get("weather_code"), "Unknown")
    name_parts = [place.get("name"), place.get("admin1"), place.get("country")]
    place_name = ", ".join(p for p in name_parts if p)
    logger.debug(f"Weather for {place_name}: {condition}")

    return (
        f"Weather for {place_name}:\n\n"
        f"Conditions: {condition} ({'Day' if current.get('is_day') == 1 else 'Night'})\n"
        f"Temperature: {current.get('temperature_2m')}{temp_symbol}\n"
        f"Feels like: {current.get('apparent_temperature')}{temp_symbol}\n"
        f"Humidity: {current.get('relative_humidity_2m')}%\n"
        f"Wind: {current.get('wind_speed_10m')} {speed_symbol} from {wind_direction(current.get('wind_direction_10m') or 0)}"
    )
