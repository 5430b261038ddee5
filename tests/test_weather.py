import httpx
import pytest

from aurorael.weather import WeatherClient, WeatherError, country_coded_query

from conftest import MADRID_PAYLOAD, PARIS_PAYLOAD, weather_handler


BASE = "https://weather.test/data/2.5"
GEO = "https://weather.test/geo/1.0"


def _client(http: httpx.AsyncClient, api_key: str = "k") -> WeatherClient:
    return WeatherClient(http, api_key=api_key, base_url=BASE, geo_base_url=GEO)


def test_country_coded_query():
    assert country_coded_query("Madrid, España") == "Madrid,ES"
    assert country_coded_query("Paris, France") == "Paris,FR"
    assert country_coded_query("Madrid") is None
    assert country_coded_query("Springfield, Atlantis") is None


@pytest.mark.asyncio
async def test_direct_query_success():
    seen = []
    transport = httpx.MockTransport(weather_handler({"Paris": PARIS_PAYLOAD}, seen))

    async with httpx.AsyncClient(transport=transport) as http:
        report = await _client(http).fetch("Paris")

    assert report.name == "Paris"
    assert report.country == "FR"
    assert report.temp == 12.5
    assert report.feels == 11.0
    assert report.desc == "light rain"
    assert report.utc_offset_sec == 3600
    assert len(seen) == 1
    params = seen[0].url.params
    assert params["appid"] == "k"
    assert params["units"] == "metric"


@pytest.mark.asyncio
async def test_country_code_retry_skips_geocoding():
    seen = []
    transport = httpx.MockTransport(weather_handler({"Madrid,ES": MADRID_PAYLOAD}, seen))

    async with httpx.AsyncClient(transport=transport) as http:
        report = await _client(http).fetch("Madrid, España")

    assert report.name == "Madrid"
    assert [r.url.params.get("q") for r in seen] == ["Madrid, España", "Madrid,ES"]
    assert not any(r.url.path.endswith("/direct") for r in seen)


@pytest.mark.asyncio
async def test_geocoding_then_coordinates():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.endswith("/direct"):
            return httpx.Response(200, json=[{"name": "Ciudad Real", "lat": 38.98, "lon": -3.92}])
        if request.url.params.get("lat") == "38.98":
            return httpx.Response(200, json=dict(MADRID_PAYLOAD, name="Ciudad Real"))
        return httpx.Response(404, json={"message": "city not found"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        report = await _client(http).fetch("Ciudad Real")

    assert report.name == "Ciudad Real"
    paths = [r.url.path for r in seen]
    assert paths == ["/data/2.5/weather", "/geo/1.0/direct", "/data/2.5/weather"]
    assert "units" not in seen[1].url.params


@pytest.mark.asyncio
async def test_all_attempts_fail_combines_messages():
    transport = httpx.MockTransport(weather_handler({}))

    async with httpx.AsyncClient(transport=transport) as http:
        with pytest.raises(WeatherError) as info:
            await _client(http).fetch("Atlantis, Nowhere")

    message = info.value.message
    assert "direct" in message and "city not found" in message
    assert "geocoding" in message and "No geocoding results" in message


@pytest.mark.asyncio
async def test_non_json_body_is_a_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>bad gateway</html>")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        with pytest.raises(WeatherError) as info:
            await _client(http).fetch("Paris")

    assert "non-JSON" in info.value.message
    assert info.value.status == 502


@pytest.mark.asyncio
async def test_missing_api_key_makes_no_request():
    seen = []
    transport = httpx.MockTransport(weather_handler({"Paris": PARIS_PAYLOAD}, seen))

    async with httpx.AsyncClient(transport=transport) as http:
        with pytest.raises(WeatherError):
            await _client(http, api_key="").fetch("Paris")

    assert seen == []
