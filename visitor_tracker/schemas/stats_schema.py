from typing import Dict

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class VisitorStats(BaseModel):
    """Resumen de distribución calculado sobre el log global de sesiones."""

    unique_visitors: int = 0
    total_sessions: int = 0
    returning_visitors: int = 0
    return_rate: str = "0.0%"
    unique_devices: int = 0
    countries: Dict[str, int] = {}
    cities: Dict[str, int] = {}
    browsers: Dict[str, int] = {}
    platforms: Dict[str, int] = {}
    devices: Dict[str, int] = {}
    timezones: Dict[str, int] = {}
    languages: Dict[str, int] = {}

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
    }


class StatsResponse(BaseModel):
    success: bool
    stats: VisitorStats

    model_config = {"populate_by_name": True}
