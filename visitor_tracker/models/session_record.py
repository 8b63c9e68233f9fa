from typing import Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class SessionRecord(BaseModel):
    """
    Snapshot inmutable de una ingesta de tracking.
    Se crea una sola vez por request y nunca se modifica.
    Se serializa con claves camelCase (model_dump(by_alias=True)).
    """

    id: str
    visitor_id: str = Field(alias="visitorID")
    fingerprint: Optional[str] = None
    audio_signature: str = "N/D"
    audio_signature_raw: Optional[str] = None

    # Red
    client_ip: Optional[str] = Field(default=None, alias="clientIP")
    server_detected_ip: Optional[str] = Field(default=None, alias="serverDetectedIP")
    is_localhost: Optional[bool] = None

    # Ubicación
    city: Optional[str] = None
    region: Optional[str] = None
    corrected_region: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    # Hora y zona horaria
    timezone: Optional[str] = None
    utc_offset: Optional[str] = None
    local_time: Optional[str] = None
    gmt_offset: Optional[float] = None

    device_type: Optional[str] = None
    org: Optional[str] = None

    # Datos del país (solo proveedor primario)
    country_population: Optional[int] = None
    country_calling_code: Optional[str] = None
    currency_name: Optional[str] = None
    currency: Optional[str] = None
    languages: Optional[str] = None
    country_capital: Optional[str] = None

    # Navegador / dispositivo
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

    # Flags de cambio respecto a la sesión anterior del mismo visitante
    location_changed: bool = False
    device_changed: bool = False
    screen_changed: bool = False
    ip_changed: bool = False
    is_returning: bool = False

    timestamp: str
    first_seen: str

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "frozen": True,
    }

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)
