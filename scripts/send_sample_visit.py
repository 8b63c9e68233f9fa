"""
Script para enviar una visita de prueba al servidor de tracking.
Ejecutar con el servidor levantado: python scripts/send_sample_visit.py

Recorre el pipeline completo del cliente (fingerprint, audio, geolocalización,
corrección de región y envío) usando señales de un navegador de ejemplo.
La URL de destino se toma de TRACK_API_URL (por defecto http://localhost:3000/api/track).
"""
import asyncio
import sys

from visitor_tracker.config import get_settings
from visitor_tracker.services.collector_service import TrackingCollector
from visitor_tracker.services.identity_service import RawSignalBundle

SAMPLE_SIGNALS = RawSignalBundle(
    user_agent=(
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
    language="pt-BR",
    platform="Win32",
    hardware_concurrency=8,
    device_memory=8,
    screen_width=1920,
    screen_height=1080,
    color_depth=24,
    timezone="America/Sao_Paulo",
    touch_support=False,
    do_not_track=None,
    referrer=None,
    page="http://localhost:3000/",
)


async def send_sample_visit() -> bool:
    collector = TrackingCollector(SAMPLE_SIGNALS)
    result = await collector.run()

    if result.degraded_stages:
        print(f"[WARN] Etapas con fallback: {', '.join(result.degraded_stages)}")

    if not result.response:
        print("[ERROR] El servidor no confirmó el tracking")
        return False

    session = result.response.get("data") or {}
    print("[OK] Tracking registrado:")
    print(f"   Visitor ID: {session.get('visitorID')}")
    print(f"   Ciudad: {session.get('city')}, {session.get('correctedRegion')}")
    print(f"   Recurrente: {session.get('isReturning')}")
    return True


if __name__ == "__main__":
    print("=" * 60)
    print("Envío de visita de prueba")
    print("=" * 60)
    print(f"Destino: {get_settings().track_api_url}")
    print("=" * 60)
    print()

    success = asyncio.run(send_sample_visit())
    sys.exit(0 if success else 1)
