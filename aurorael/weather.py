from typing import Any, Dict, Optional, Tuple
import logging
import time
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone

import httpx

from .text import normalize_text


# Country names as users type them (normalized) -> ISO 3166 alpha-2.
COUNTRY_CODES: Dict[str, str] = {
    "espana": "ES",
    "spain": "ES",
    "mexico": "MX",
    "francia": "FR",
    "france": "FR",
    "argentina": "AR",
    "colombia": "CO",
    "chile": "CL",
    "peru": "PE",
    "venezuela": "VE",
    "ecuador": "EC",
    "uruguay": "UY",
    "paraguay": "PY",
    "bolivia": "BO",
    "cuba": "CU",
    "guatemala": "GT",
    "costa rica": "CR",
    "panama": "PA",
    "estados unidos": "US",
    "united states": "US",
    "usa": "US",
    "eeuu": "US",
    "reino unido": "GB",
    "united kingdom": "GB",
    "uk": "GB",
    "inglaterra": "GB",
    "england": "GB",
    "alemania": "DE",
    "germany": "DE",
    "italia": "IT",
    "italy": "IT",
    "portugal": "PT",
    "brasil": "BR",
    "brazil": "BR",
    "canada": "CA",
    "japon": "JP",
    "japan": "JP",
    "china": "CN",
    "india": "IN",
    "australia": "AU",
}


class WeatherError(Exception):
    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


@dataclass
class WeatherReport:
    name: str
    country: str
    temp: Optional[float]
    feels: Optional[float]
    desc: str
    raw: Dict[str, Any] = field(repr=False, default_factory=dict)

    @property
    def utc_offset_sec(self) -> int:
        try:
            return int(self.raw.get("timezone") or 0)
        except (TypeError, ValueError):
            return 0


def country_coded_query(location: str) -> Optional[str]:
    """'Madrid, España' -> 'Madrid,ES' when the country is a known name."""
    if "," not in location:
        return None
    place, _, country = location.rpartition(",")
    place = place.strip()
    code = COUNTRY_CODES.get(normalize_text(country).strip())
    if not place or not code:
        return None
    return f"{place},{code}"


def _report_from_payload(data: Dict[str, Any]) -> WeatherReport:
    main = data.get("main") or {}
    conditions = data.get("weather") or [{}]
    return WeatherReport(
        name=str(data.get("name") or ""),
        country=str((data.get("sys") or {}).get("country") or ""),
        temp=main.get("temp"),
        feels=main.get("feels_like"),
        desc=str(conditions[0].get("description") or ""),
        raw=data,
    )


class WeatherClient:
    """OpenWeatherMap lookups with a name -> country-code -> geocoding escalation."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: Optional[str],
        base_url: str = "https://api.openweathermap.org/data/2.5",
        geo_base_url: str = "https://api.openweathermap.org/geo/1.0",
        user_agent: str = "Aurorael-Backend",
    ) -> None:
        self._client = client
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._geo_base_url = geo_base_url.rstrip("/")
        self._headers = {"User-Agent": user_agent}

    async def fetch(self, location: str) -> WeatherReport:
        if not self._api_key:
            raise WeatherError("OPENWEATHER_API_KEY not configured")
        location = (location or "").strip()
        if not location:
            raise WeatherError("Empty location")

        try:
            data = await self._get_json(f"{self._base_url}/weather", {"q": location}, fn="direct")
            return _report_from_payload(data)
        except WeatherError as e:
            direct_error = e

        coded = country_coded_query(location)
        if coded:
            try:
                data = await self._get_json(f"{self._base_url}/weather", {"q": coded}, fn="country_code")
                return _report_from_payload(data)
            except WeatherError as e:
                logging.info("Country-code lookup failed for %r: %s", coded, e.message)

        try:
            lat, lon = await self.geocode(location)
            data = await self._get_json(
                f"{self._base_url}/weather", {"lat": lat, "lon": lon}, fn="coordinates"
            )
            return _report_from_payload(data)
        except WeatherError as geo_error:
            raise WeatherError(
                f"Weather lookup failed for {location!r}: direct: {direct_error.message}; "
                f"geocoding: {geo_error.message}",
                status=geo_error.status or direct_error.status,
            ) from geo_error

    async def geocode(self, location: str) -> Tuple[float, float]:
        data = await self._get_json(
            f"{self._geo_base_url}/direct", {"q": location, "limit": 1}, fn="geocode", units=None
        )
        if not isinstance(data, list) or not data:
            raise WeatherError(f"No geocoding results for {location!r}", status=404)
        first = data[0]
        try:
            return float(first["lat"]), float(first["lon"])
        except (KeyError, TypeError, ValueError):
            raise WeatherError("Geocoding response malformed")

    async def _get_json(
        self, url: str, params: Dict[str, Any], fn: str, units: Optional[str] = "metric"
    ) -> Any:
        start_time = time.monotonic()
        query = dict(params)
        if units:
            query["units"] = units
        query["appid"] = self._api_key
        http_status: Optional[int] = None
        ok = False
        try:
            resp = await self._client.get(url, params=query, headers=self._headers)
            http_status = resp.status_code
            try:
                data = resp.json()
            except ValueError:
                raise WeatherError(f"Weather API returned non-JSON body ({resp.status_code})", resp.status_code)
            if resp.status_code < 200 or resp.status_code >= 300:
                message = data.get("message") if isinstance(data, dict) else None
                raise WeatherError(
                    f"Weather API error {resp.status_code}: {message or resp.reason_phrase}",
                    resp.status_code,
                )
            ok = True
            return data
        except httpx.HTTPError as e:
            raise WeatherError(f"Weather API request failed: {str(e)}")
        finally:
            latency_ms = (time.monotonic() - start_time) * 1000
            log_data = {
                "ts": datetime.now(timezone.utc).isoformat(),
                "tool": "openweather",
                "fn": fn,
                "latency_ms": f"{latency_ms:.2f}",
                "ok": ok,
                "http_status": http_status,
            }
            logging.info(json.dumps(log_data))
