import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..config import get_settings
from ..schemas.tracking_schema import SessionsResponse, TrackingPayload, TrackResponse
from ..services.ingestion_service import ingest
from ..services.stats_service import recent_sessions
from ..store import VisitorStore, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["tracking"])


@router.post("/track", response_model=TrackResponse)
def track(payload: TrackingPayload, request: Request, store: VisitorStore = Depends(get_store)):
    """
    Recibe el registro compuesto del cliente, calcula el visitor_id,
    detecta cambios y guarda la sesión.
    """
    try:
        remote_addr = request.client.host if request.client else None
        record = ingest(store, payload, headers=request.headers, remote_addr=remote_addr)
    except Exception as e:
        logger.error(f"❌ Error en el tracking: {e}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Error al procesar tracking"},
        )

    return TrackResponse(success=True, message="Tracking registrado", data=record.to_dict())


def _parse_limit(raw: Optional[str]) -> int:
    default = get_settings().sessions_default_limit
    try:
        limit = int(raw)
    except (TypeError, ValueError):
        return default
    return limit if limit > 0 else default


@router.get("/sessions", response_model=SessionsResponse)
def list_sessions(limit: Optional[str] = None, store: VisitorStore = Depends(get_store)):
    """
    Últimas sesiones registradas, la más reciente primero.
    - limit: cantidad máxima a devolver (por defecto 50; valores inválidos usan el default)
    """
    sessions = recent_sessions(store, _parse_limit(limit))
    return SessionsResponse(
        success=True,
        total=store.total_sessions,
        sessions=[session.to_dict() for session in sessions],
    )
