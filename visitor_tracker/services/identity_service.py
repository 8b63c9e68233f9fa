"""
Servicio de identidad del visitante.

Incluye:
- Hash rotativo de 32 bits (mismo algoritmo en cliente y servidor)
- visitor_id determinístico del servidor
- Fingerprint compuesto del navegador (SHA-256 con fallback al hash rotativo)
- Firma de audio (render offline de un oscilador senoidal) y su CRC-32
"""
import hashlib
import logging
import math
import zlib
from typing import Iterable, List, Optional, Protocol

from pydantic import BaseModel

logger = logging.getLogger(__name__)

SEPARATOR = "||"

AUDIO_UNSUPPORTED = "UNSUPPORTED"
AUDIO_ERROR = "ERROR"
AUDIO_SENTINELS = (AUDIO_UNSUPPORTED, AUDIO_ERROR)

# Parámetros del render de audio offline
AUDIO_CHANNELS = 1
AUDIO_LENGTH = 256
AUDIO_SAMPLE_RATE = 44100
AUDIO_FREQUENCY = 10000
AUDIO_GAIN = 0.0001
AUDIO_STRIDE = 4
AUDIO_SCALE = 1_000_000


class RawSignalBundle(BaseModel):
    """Señales del navegador/dispositivo recolectadas en cada carga de página."""

    user_agent: str = ""
    language: str = ""
    platform: str = ""
    hardware_concurrency: Optional[int] = None
    device_memory: Optional[float] = None
    screen_width: int = 0
    screen_height: int = 0
    color_depth: Optional[int] = None
    timezone: str = "UTC"
    touch_support: bool = False
    do_not_track: Optional[str] = None
    referrer: Optional[str] = None
    page: Optional[str] = None

    @property
    def screen(self) -> str:
        return f"{self.screen_width}x{self.screen_height}"


def _utf16_units(text: str) -> Iterable[int]:
    # Unidades UTF-16, igual que charCodeAt() en el navegador
    data = text.encode("utf-16-le", "surrogatepass")
    for i in range(0, len(data), 2):
        yield data[i] | (data[i + 1] << 8)


def rolling_hash(text: str) -> int:
    """
    Hash rotativo: hash = hash * 31 + charCode, truncado a entero de 32 bits con signo.
    """
    value = 0
    for code in _utf16_units(text):
        value = (value * 31 + code) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return value


def simple_hash(text: str) -> str:
    """Fallback no criptográfico del fingerprint: hex de 16 dígitos con ceros a la izquierda."""
    return format(abs(rolling_hash(text)), "x").zfill(16)


def generate_visitor_id(
    ip: Optional[str],
    audio_signature_raw: Optional[str],
    audio_signature: Optional[str],
    user_agent: Optional[str],
    platform: Optional[str],
) -> str:
    """
    Genera el ID del visitante a partir de IP, firma de audio (raw antes que
    procesada), user agent y plataforma.

    No es criptográfico: dos visitantes distintos pueden colisionar.
    """
    components = [
        ip or "unknown",
        audio_signature_raw or audio_signature or "unknown",
        user_agent or "unknown",
        platform or "unknown",
    ]
    return format(abs(rolling_hash(SEPARATOR.join(components))), "x")


def crc32(text: str) -> str:
    """CRC-32 estándar (polinomio 0xEDB88320) como 8 dígitos hex en mayúsculas."""
    return format(zlib.crc32(text.encode("utf-8")) & 0xFFFFFFFF, "08X")


def process_audio_signature(raw: str) -> str:
    if raw in AUDIO_SENTINELS:
        return "N/D"
    return crc32(raw)


def _js_string(value) -> str:
    # Misma conversión que Array.prototype.join en el navegador
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def fingerprint_components(signals: RawSignalBundle) -> List[str]:
    return [
        _js_string(signals.user_agent),
        _js_string(signals.language),
        _js_string(signals.platform),
        _js_string(signals.hardware_concurrency or 0),
        _js_string(signals.device_memory or 0),
        signals.screen,
        _js_string(signals.color_depth),
        _js_string(signals.timezone),
        _js_string(signals.touch_support),
        _js_string(signals.do_not_track),
    ]


def sha256_hex(text: str) -> str:
    """SHA-256 si el entorno lo permite; si no, el hash rotativo."""
    try:
        return hashlib.new("sha256", text.encode("utf-8")).hexdigest()
    except ValueError as e:
        logger.warning(f"⚠️ SHA-256 no disponible, usando fallback: {e}")
        return simple_hash(text)


def compute_fingerprint(signals: RawSignalBundle, secure: bool = True) -> str:
    """
    Fingerprint compuesto: hash de las señales del dispositivo unidas con "||".

    Args:
        signals: señales recolectadas en la carga de página
        secure: False fuerza el hash rotativo (entornos sin SHA-256)
    """
    joined = SEPARATOR.join(fingerprint_components(signals))
    if secure:
        return sha256_hex(joined)
    return simple_hash(joined)


class AudioRenderer(Protocol):
    def render(
        self, channels: int, length: int, sample_rate: int, frequency: float, gain: float
    ) -> List[List[float]]:
        ...


class SineOfflineRenderer:
    """
    Render offline de un oscilador senoidal conectado a un nodo de ganancia.
    Devuelve un buffer por canal.
    """

    def render(self, channels, length, sample_rate, frequency, gain):
        step = 2 * math.pi * frequency / sample_rate
        channel = [gain * math.sin(step * n) for n in range(length)]
        return [list(channel) for _ in range(channels)]


def get_audio_signature(renderer: Optional[AudioRenderer] = None) -> str:
    """
    Firma de audio "raw": suma de amplitudes absolutas (paso 4) del buffer
    renderizado, escalada y redondeada a entero.

    Nunca lanza excepciones: devuelve "UNSUPPORTED" si no hay renderer y
    "ERROR" si el render falla.
    """
    if renderer is None:
        logger.warning("⚠️ Render de audio offline no soportado")
        return AUDIO_UNSUPPORTED
    try:
        buffers = renderer.render(
            AUDIO_CHANNELS, AUDIO_LENGTH, AUDIO_SAMPLE_RATE, AUDIO_FREQUENCY, AUDIO_GAIN
        )
        data = buffers[0]
        total = sum(abs(data[i]) for i in range(0, len(data), AUDIO_STRIDE))
        # Redondeo "half up", como Math.round
        result = str(math.floor(total * AUDIO_SCALE + 0.5))
        logger.info(f"Firma de audio generada: {result}")
        return result
    except Exception as e:
        logger.error(f"❌ Error al generar la firma de audio: {e}")
        return AUDIO_ERROR
