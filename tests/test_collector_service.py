import asyncio
from datetime import datetime

import httpx
import pytz

from visitor_tracker.services.collector_service import (
    TrackingCollector,
    detect_device_type,
    is_local_ip,
    local_clock,
)
from visitor_tracker.services.geolocation_service import IpapiProvider
from visitor_tracker.services.identity_service import RawSignalBundle, SineOfflineRenderer

IPAPI_BODY = {
    "ip": "177.10.20.30",
    "city": "São Paulo",
    "region": "Sao Paulo",
    "country_code": "BR",
    "country_name": "Brazil",
    "timezone": "America/Sao_Paulo",
    "org": "Vivo",
}

GEOCODING_BODY = {"results": [{"country_code": "BR", "admin1": "São Paulo", "country": "Brasil"}]}

SIGNALS = RawSignalBundle(
    user_agent="Mozilla/5.0 (Linux; Android 14) AppleWebKit/537.36 Chrome/124.0 Mobile Safari/537.36",
    language="pt-BR",
    platform="Linux armv8l",
    hardware_concurrency=8,
    device_memory=4,
    screen_width=412,
    screen_height=915,
    color_depth=24,
    timezone="America/Sao_Paulo",
    touch_support=True,
)


class ExplodingProvider(IpapiProvider):
    async def lookup(self, client):
        raise RuntimeError("proveedor roto")


def _run_collector(handler, **kwargs):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            collector = TrackingCollector(SIGNALS, http_client=client, **kwargs)
            return await collector.run()

    return asyncio.run(run())


def test_detect_device_type():
    assert detect_device_type("Mozilla/5.0 (Linux; Android 14) Mobile") == "Mobile"
    assert detect_device_type("Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X)") == "Tablet"
    assert detect_device_type("Mozilla/5.0 (Windows NT 10.0; Win64; x64)") == "Desktop"


def test_is_local_ip():
    assert is_local_ip("127.0.0.1")
    assert is_local_ip("::1")
    assert is_local_ip("192.168.0.10")
    assert is_local_ip("10.1.2.3")
    assert not is_local_ip("177.10.20.30")
    assert not is_local_ip(None)


def test_local_clock():
    now = datetime(2024, 5, 1, 15, 30, 0, tzinfo=pytz.utc)

    clock = local_clock("America/Sao_Paulo", now)
    assert clock == {"local_time": "12:30:00", "gmt_offset": -3.0}

    fallback = local_clock("Invalid/Zone", now)
    assert fallback == {"local_time": "15:30:00", "gmt_offset": 0.0}


def test_pipeline_runs_stages_in_order():
    calls = []

    def handler(request: httpx.Request):
        calls.append(request.url.host)
        if request.url.host == "ipapi.co":
            return httpx.Response(200, json=IPAPI_BODY)
        if request.url.host == "geocoding-api.open-meteo.com":
            return httpx.Response(200, json=GEOCODING_BODY)
        if request.url.path == "/api/track":
            return httpx.Response(200, json={"success": True, "message": "Tracking registrado", "data": {}})
        return httpx.Response(404)

    result = _run_collector(handler)

    assert calls == ["ipapi.co", "geocoding-api.open-meteo.com", "localhost"]
    assert result.degraded_stages == []
    assert result.response["success"] is True

    payload = result.payload
    assert len(payload["fingerprint"]) == 64
    assert payload["audioSignatureRaw"].isdigit()
    assert len(payload["audioSignature"]) == 8
    assert payload["ip"] == "177.10.20.30"
    assert payload["region"] == "Sao Paulo"
    assert payload["correctedRegion"] == "São Paulo"
    assert payload["country"] == "Brazil"
    assert payload["countryCode"] == "BR"
    assert payload["deviceType"] == "Mobile"
    assert payload["screen"] == "412x915"
    assert payload["referrer"] == "Direct"
    assert payload["isLocalhost"] is False
    assert payload["gmtOffset"] == -3.0


def test_pipeline_substitutes_sentinels_when_stages_fail():
    submitted = []

    def handler(request: httpx.Request):
        if request.url.path == "/api/track":
            submitted.append(request)
            return httpx.Response(200, json={"success": True, "message": "ok", "data": {}})
        return httpx.Response(500)

    result = _run_collector(handler, renderer_class=None, providers=[ExplodingProvider("https://ipapi.co/json/")])

    assert result.degraded_stages == ["geolocation"]
    assert len(submitted) == 1

    payload = result.payload
    assert payload["audioSignatureRaw"] == "UNSUPPORTED"
    assert payload["audioSignature"] == "N/D"
    assert payload["ip"] is None
    assert payload["city"] == "N/D"
    assert payload["correctedRegion"] == "N/D"


def test_each_collector_builds_its_own_renderer():
    class CountingRenderer(SineOfflineRenderer):
        created = 0

        def __init__(self):
            CountingRenderer.created += 1

    first = TrackingCollector(SIGNALS, renderer_class=CountingRenderer, track_url="http://testserver/api/track")
    second = TrackingCollector(SIGNALS, renderer_class=CountingRenderer, track_url="http://testserver/api/track")

    assert CountingRenderer.created == 2
    assert first.renderer is not second.renderer
    assert isinstance(TrackingCollector(SIGNALS, track_url="http://x/api/track").renderer, SineOfflineRenderer)
    assert TrackingCollector(SIGNALS, renderer_class=None, track_url="http://x/api/track").renderer is None


def test_pipeline_reports_failed_submission():
    def handler(request: httpx.Request):
        if request.url.host == "ipapi.co":
            return httpx.Response(200, json=IPAPI_BODY)
        if request.url.path == "/api/track":
            return httpx.Response(500, json={"success": False, "message": "Error al procesar tracking"})
        return httpx.Response(200, json={"results": []})

    result = _run_collector(handler)

    assert result.response is None
    assert result.payload["correctedRegion"] == "Sao Paulo"


def test_pipeline_submits_to_server(app):
    async def run():
        geo = httpx.MockTransport(lambda request: httpx.Response(200, json=IPAPI_BODY)
                                  if request.url.host == "ipapi.co" else httpx.Response(200, json=GEOCODING_BODY))
        async with httpx.AsyncClient(transport=geo) as http_client, httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://testserver"
        ) as submit_client:
            collector = TrackingCollector(
                SIGNALS,
                http_client=http_client,
                submit_client=submit_client,
                track_url="http://testserver/api/track",
            )
            first = await collector.run()
            second = await collector.run()
            return first, second

    first, second = asyncio.run(run())

    assert first.response["data"]["isReturning"] is False
    assert second.response["data"]["isReturning"] is True
    assert second.response["data"]["visitorID"] == first.response["data"]["visitorID"]
    assert app.state.store.total_sessions == 2
