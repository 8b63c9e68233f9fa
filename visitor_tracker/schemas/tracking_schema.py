from typing import Any, List, Optional

from pydantic import BaseModel, field_validator
from pydantic.alias_generators import to_camel


class TrackingPayload(BaseModel):
    """
    Registro compuesto enviado por el cliente a POST /api/track.
    Todos los campos son opcionales; los valores por defecto se aplican aquí,
    en el borde, y no en la lógica de ingesta.
    """

    fingerprint: Optional[str] = None
    audio_signature: str = "N/D"
    audio_signature_raw: Optional[str] = None

    ip: Optional[str] = None
    is_localhost: Optional[bool] = None

    city: Optional[str] = None
    region: Optional[str] = None
    corrected_region: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    timezone: Optional[str] = None
    utc_offset: Optional[str] = None
    local_time: Optional[str] = None
    gmt_offset: Optional[float] = None

    device_type: Optional[str] = None
    org: Optional[str] = None

    country_population: Optional[int] = None
    country_calling_code: Optional[str] = None
    currency_name: Optional[str] = None
    currency: Optional[str] = None
    languages: Optional[str] = None
    country_capital: Optional[str] = None

    user_agent: str = "unknown"
    language: str = "unknown"
    platform: str = "unknown"
    hardware_concurrency: int = 0
    device_memory: float = 0
    screen: Optional[str] = None
    color_depth: Optional[int] = None
    touch_support: Optional[bool] = None
    do_not_track: Optional[str] = None

    referrer: Optional[str] = None
    page: Optional[str] = None
    timestamp: Optional[str] = None

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
    }

    @field_validator("user_agent", "language", "platform", mode="before")
    @classmethod
    def default_unknown(cls, value: Any) -> Any:
        return value or "unknown"

    @field_validator("audio_signature", mode="before")
    @classmethod
    def default_audio_signature(cls, value: Any) -> Any:
        return value or "N/D"

    @field_validator("hardware_concurrency", "device_memory", mode="before")
    @classmethod
    def default_zero(cls, value: Any) -> Any:
        return value or 0

    @field_validator("do_not_track", "utc_offset", "country_calling_code", mode="before")
    @classmethod
    def coerce_to_str(cls, value: Any) -> Any:
        # Los navegadores envían estos campos como string, número o booleano
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, bool):
            return "1" if value else "0"
        return str(value)


class TrackResponse(BaseModel):
    success: bool
    message: str
    data: Optional[dict] = None


class SessionsResponse(BaseModel):
    success: bool
    total: int
    sessions: List[dict]
