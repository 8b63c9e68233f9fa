"""
Pipeline de recolección del lado cliente.

Etapas en orden estricto (sin paralelismo):
    fingerprint -> audio -> geolocation -> correction -> submission

Si una etapa falla se sustituyen sus valores de fallback y el pipeline sigue,
de modo que siempre se envía un registro (aunque sea parcial).
"""
import logging
import re
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

import httpx
import pytz
from pydantic import BaseModel

from ..config import get_settings
from ..schemas.tracking_schema import TrackingPayload
from ..utils import NOT_AVAILABLE, utc_now_iso
from .geolocation_service import GeoLocation, GeoProvider, correct_location, resolve_location
from .identity_service import (
    AUDIO_ERROR,
    AudioRenderer,
    RawSignalBundle,
    SineOfflineRenderer,
    compute_fingerprint,
    get_audio_signature,
    process_audio_signature,
)

logger = logging.getLogger(__name__)

LOCAL_PREFIXES = ("192.168.", "10.", "172.")
LOCAL_ADDRESSES = ("127.0.0.1", "::1")


def detect_device_type(user_agent: str) -> str:
    if re.search(r"Mobi|Android", user_agent or "", re.IGNORECASE):
        return "Mobile"
    if re.search(r"Tablet|iPad", user_agent or "", re.IGNORECASE):
        return "Tablet"
    return "Desktop"


def is_local_ip(ip: Optional[str]) -> bool:
    if not ip:
        return False
    return ip in LOCAL_ADDRESSES or ip.startswith(LOCAL_PREFIXES)


def local_clock(timezone_name: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Hora local HH:MM:SS y offset GMT en horas para la zona horaria del navegador."""
    try:
        tz = pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"⚠️ Zona horaria desconocida: {timezone_name}, usando UTC")
        tz = pytz.utc
    local = (now or datetime.now(pytz.utc)).astimezone(tz)
    return {
        "local_time": local.strftime("%H:%M:%S"),
        "gmt_offset": local.utcoffset().total_seconds() / 3600,
    }


class Stage:
    """Etapa con nombre del pipeline y los valores que la reemplazan si falla."""

    def __init__(
        self,
        name: str,
        run: Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]],
        fallback: Callable[[Dict[str, Any]], Dict[str, Any]],
    ):
        self.name = name
        self.run = run
        self.fallback = fallback


class CollectionResult(BaseModel):
    payload: Dict[str, Any]
    response: Optional[Dict[str, Any]] = None
    degraded_stages: List[str] = []


class TrackingCollector:
    """
    Recolecta señales, resuelve identidad y ubicación, y envía el registro
    compuesto a POST /api/track.
    """

    def __init__(
        self,
        signals: RawSignalBundle,
        http_client: Optional[httpx.AsyncClient] = None,
        submit_client: Optional[httpx.AsyncClient] = None,
        renderer_class: Optional[Type[AudioRenderer]] = SineOfflineRenderer,
        providers: Optional[List[GeoProvider]] = None,
        track_url: Optional[str] = None,
        secure_hash: bool = True,
    ):
        self.signals = signals
        self.http_client = http_client
        self.submit_client = submit_client or http_client
        # Sin clase de renderer el audio se reporta como "UNSUPPORTED"
        self.renderer = renderer_class() if renderer_class is not None else None
        self.providers = providers
        self.track_url = track_url or get_settings().track_api_url
        self.secure_hash = secure_hash

        self.stages = [
            Stage("fingerprint", self._fingerprint, lambda ctx: {"fingerprint": NOT_AVAILABLE}),
            Stage(
                "audio",
                self._audio,
                lambda ctx: {"audio_signature_raw": AUDIO_ERROR, "audio_signature": NOT_AVAILABLE},
            ),
            Stage("geolocation", self._geolocation, lambda ctx: {"location": GeoLocation.unavailable()}),
            Stage(
                "correction",
                self._correction,
                lambda ctx: {"corrected_region": ctx["location"].region, "corrected_country": None},
            ),
            Stage("submission", self._submission, lambda ctx: {"response": None}),
        ]

    async def _fingerprint(self, ctx):
        fingerprint = compute_fingerprint(self.signals, secure=self.secure_hash)
        logger.info(f"✅ Fingerprint generado: {fingerprint[:16]}...")
        return {"fingerprint": fingerprint}

    async def _audio(self, ctx):
        raw = get_audio_signature(self.renderer)
        processed = process_audio_signature(raw)
        logger.info(f"✅ Audio CRC32: {processed}")
        return {"audio_signature_raw": raw, "audio_signature": processed}

    async def _geolocation(self, ctx):
        location = await resolve_location(self.http_client, self.providers)
        logger.info(f"✅ Datos de IP obtenidos: {location.ip}")
        return {"location": location}

    async def _correction(self, ctx):
        location: GeoLocation = ctx["location"]
        correction = await correct_location(
            location.city, location.country_code, location.region, client=self.http_client
        )
        return correction.model_dump()

    async def _submission(self, ctx):
        payload = ctx["payload"]
        if self.submit_client is not None:
            response = await self.submit_client.post(self.track_url, json=payload)
        else:
            async with httpx.AsyncClient(timeout=get_settings().geo_timeout_seconds) as client:
                response = await client.post(self.track_url, json=payload)

        if not response.is_success:
            logger.error(f"❌ Error HTTP al enviar tracking: {response.status_code}")
            return {"response": None}

        result = response.json()
        logger.info(f"✅ Tracking enviado con éxito: {result.get('message')}")
        return {"response": result}

    def build_payload(self, ctx: Dict[str, Any]) -> Dict[str, Any]:
        """Arma el registro compuesto (claves camelCase) con lo que haya en el contexto."""
        signals = self.signals
        location: GeoLocation = ctx.get("location") or GeoLocation.unavailable()
        clock = local_clock(signals.timezone)

        payload = TrackingPayload(
            fingerprint=ctx.get("fingerprint"),
            audio_signature=ctx.get("audio_signature"),
            audio_signature_raw=ctx.get("audio_signature_raw"),
            ip=location.ip,
            is_localhost=is_local_ip(location.ip),
            city=location.city,
            region=location.region,
            corrected_region=ctx.get("corrected_region") or location.region,
            country=location.country_name,
            country_code=location.country_code,
            latitude=location.latitude,
            longitude=location.longitude,
            timezone=signals.timezone,
            utc_offset=location.utc_offset,
            local_time=clock["local_time"],
            gmt_offset=clock["gmt_offset"],
            device_type=detect_device_type(signals.user_agent),
            org=location.org,
            country_population=location.country_population,
            country_calling_code=location.country_calling_code,
            currency_name=location.currency_name,
            currency=location.currency,
            languages=location.languages,
            country_capital=location.country_capital,
            user_agent=signals.user_agent,
            language=signals.language,
            platform=signals.platform,
            hardware_concurrency=signals.hardware_concurrency or 0,
            device_memory=signals.device_memory or 0,
            screen=signals.screen,
            color_depth=signals.color_depth,
            touch_support=signals.touch_support,
            do_not_track=signals.do_not_track,
            referrer=signals.referrer or "Direct",
            page=signals.page,
            timestamp=utc_now_iso(),
        )
        return payload.model_dump(by_alias=True)

    async def run(self) -> CollectionResult:
        """Ejecuta las etapas en orden; cada fallo se reemplaza por su fallback."""
        logger.info("🔍 Iniciando recolección de datos de tracking...")
        ctx: Dict[str, Any] = {}
        degraded: List[str] = []

        for stage in self.stages:
            if stage.name == "submission":
                ctx["payload"] = self.build_payload(ctx)
            try:
                ctx.update(await stage.run(ctx))
            except Exception as e:
                logger.warning(f"⚠️ Etapa '{stage.name}' falló, usando fallback: {e!r}")
                degraded.append(stage.name)
                ctx.update(stage.fallback(ctx))

        return CollectionResult(payload=ctx["payload"], response=ctx.get("response"), degraded_stages=degraded)
