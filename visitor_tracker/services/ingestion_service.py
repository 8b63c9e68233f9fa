"""
Motor de ingesta: calcula el visitor_id, detecta cambios respecto a la última
sesión del visitante y registra la nueva sesión en el store.
"""
import logging
from typing import Mapping, Optional
from uuid import uuid4

from pydantic import BaseModel

from ..models.session_record import SessionRecord
from ..schemas.tracking_schema import TrackingPayload
from ..store import VisitorStore
from ..utils import NOT_AVAILABLE, utc_now_iso
from .identity_service import generate_visitor_id

logger = logging.getLogger(__name__)


class SessionChanges(BaseModel):
    location_changed: bool = False
    device_changed: bool = False
    screen_changed: bool = False
    ip_changed: bool = False


def detect_server_ip(
    payload: TrackingPayload,
    headers: Mapping[str, str],
    remote_addr: Optional[str],
) -> Optional[str]:
    """
    IP detectada por el servidor (solo diagnóstico, no entra en el visitor_id):
    IP declarada por el cliente -> X-Forwarded-For (primera) -> X-Real-IP -> conexión.
    """
    if payload.ip:
        return payload.ip

    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    return headers.get("x-real-ip") or remote_addr


def _changed(previous, current) -> bool:
    return previous != current and current != NOT_AVAILABLE


def detect_changes(last_session: Optional[SessionRecord], payload: TrackingPayload) -> SessionChanges:
    """
    Compara ciudad, firma de audio procesada, pantalla e IP con la sesión anterior.
    Un flag se activa solo si el valor cambió y el nuevo no es "N/D".
    """
    if last_session is None:
        return SessionChanges()

    return SessionChanges(
        location_changed=_changed(last_session.city, payload.city),
        device_changed=_changed(last_session.audio_signature, payload.audio_signature),
        screen_changed=_changed(last_session.screen, payload.screen),
        ip_changed=_changed(last_session.client_ip, payload.ip),
    )


def build_session_record(
    payload: TrackingPayload,
    visitor_id: str,
    server_ip: Optional[str],
    changes: SessionChanges,
    is_returning: bool,
) -> SessionRecord:
    now = utc_now_iso()
    return SessionRecord(
        id=uuid4().hex,
        visitor_id=visitor_id,
        fingerprint=payload.fingerprint,
        audio_signature=payload.audio_signature,
        audio_signature_raw=payload.audio_signature_raw,
        client_ip=payload.ip,
        server_detected_ip=server_ip,
        is_localhost=payload.is_localhost,
        city=payload.city,
        region=payload.region,
        corrected_region=payload.corrected_region,
        country=payload.country,
        country_code=payload.country_code,
        latitude=payload.latitude,
        longitude=payload.longitude,
        timezone=payload.timezone,
        utc_offset=payload.utc_offset,
        local_time=payload.local_time,
        gmt_offset=payload.gmt_offset,
        device_type=payload.device_type,
        org=payload.org,
        country_population=payload.country_population,
        country_calling_code=payload.country_calling_code,
        currency_name=payload.currency_name,
        currency=payload.currency,
        languages=payload.languages,
        country_capital=payload.country_capital,
        user_agent=payload.user_agent,
        language=payload.language,
        platform=payload.platform,
        hardware_concurrency=payload.hardware_concurrency,
        device_memory=payload.device_memory,
        screen=payload.screen,
        color_depth=payload.color_depth,
        touch_support=payload.touch_support,
        do_not_track=payload.do_not_track,
        referrer=payload.referrer,
        page=payload.page,
        is_returning=is_returning,
        timestamp=payload.timestamp or now,
        first_seen=now,
        **changes.model_dump(),
    )


def _log_changes(last_session: SessionRecord, record: SessionRecord) -> None:
    if record.location_changed:
        logger.info(f"🚩 Cambio de ubicación: {last_session.city} → {record.city}")
    if record.device_changed:
        logger.info("💻 Cambio de dispositivo detectado")
    if record.screen_changed:
        logger.info(f"🖥️ Cambio de pantalla: {last_session.screen} → {record.screen}")
    if record.ip_changed:
        logger.info(f"🌐 Cambio de IP: {last_session.client_ip} → {record.client_ip}")


def ingest(
    store: VisitorStore,
    payload: TrackingPayload,
    headers: Optional[Mapping[str, str]] = None,
    remote_addr: Optional[str] = None,
) -> SessionRecord:
    """
    Registra una sesión de tracking.

    - Visitante existente: incrementa visitas, actualiza last_seen y agrega la sesión.
    - Visitante nuevo: crea el agregado con una sola sesión.
    La sesión se construye completa antes de tocar el store, así que un error
    no deja registros parciales.
    """
    visitor_id = generate_visitor_id(
        payload.ip,
        payload.audio_signature_raw,
        payload.audio_signature,
        payload.user_agent,
        payload.platform,
    )
    server_ip = detect_server_ip(payload, headers or {}, remote_addr)

    with store.transaction():
        last_session = store.last_session(visitor_id)
        is_returning = last_session is not None
        changes = detect_changes(last_session, payload)
        record = build_session_record(payload, visitor_id, server_ip, changes, is_returning)

        if is_returning:
            store.append_session(record)
            _log_changes(last_session, record)
        else:
            store.add_visitor(record)
            logger.info(f"🆕 NUEVO visitante único: {visitor_id}")

    emoji = "🔄" if is_returning else "✅"
    logger.info(f"{emoji} Sesión: {record.city}, {record.corrected_region} | IP: {record.client_ip or server_ip}")
    return record
