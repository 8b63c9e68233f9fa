from datetime import datetime, timezone
from typing import Any

# Valor centinela usado cuando un dato no está disponible
NOT_AVAILABLE = "N/D"


def utc_now_iso() -> str:
    """
    Devuelve el instante actual en UTC con formato ISO 8601 y milisegundos.

    Ejemplo: "2024-05-01T13:45:10.123Z"
    """
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def is_sentinel(value: Any) -> bool:
    """Indica si un valor es ausente o el centinela "N/D"."""
    return value is None or value == NOT_AVAILABLE
