import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..schemas.stats_schema import StatsResponse
from ..services.stats_service import compute_stats
from ..store import VisitorStore, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["stats"])


@router.get("/stats", response_model=StatsResponse)
def get_stats(store: VisitorStore = Depends(get_store)):
    """
    Estadísticas agregadas sobre todas las sesiones:
    - visitantes únicos, sesiones totales, visitantes recurrentes y tasa de retorno
    - distribución por país, ciudad, navegador, plataforma, dispositivo,
      zona horaria e idioma
    """
    try:
        stats = compute_stats(store)
    except Exception as e:
        logger.error(f"Error al calcular estadísticas: {e}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Error al calcular estadísticas"},
        )

    return StatsResponse(success=True, stats=stats)
