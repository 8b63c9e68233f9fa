import os
import logging
from pathlib import Path
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from .routers import tracking, stats
from .config import get_settings, clear_settings_cache
from .store import VisitorStore

# Configurar logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Cargar variables de entorno desde .env (solo en desarrollo local)
project_dir = Path(__file__).parent.parent  # visitor-tracker/visitor_tracker -> visitor-tracker
env_path = project_dir / ".env"
loaded = load_dotenv(dotenv_path=env_path)
if loaded:
    logger.info(f"Variables de entorno cargadas desde: {env_path}")

# Limpiar cache de settings para asegurar que se recarguen las variables
clear_settings_cache()


def build_allowed_origins() -> list:
    """Construye la lista de orígenes CORS permitidos a partir de CORS_ORIGIN."""
    app_settings = get_settings()
    allowed_origins = [
        "http://localhost:3000",
        "http://localhost:3001",
    ]

    # Verificar si CORS_ORIGIN está realmente configurado (no es el default)
    cors_origin_env = os.getenv("CORS_ORIGIN", "")
    cors_origin_configured = cors_origin_env and cors_origin_env != "http://localhost:3000"

    # Permitir múltiples orígenes separados por coma
    if cors_origin_configured:
        for origin in (o.strip() for o in cors_origin_env.split(",")):
            if origin and origin not in allowed_origins:
                allowed_origins.append(origin)

    # El script de tracking se incrusta en sitios de terceros: en producción
    # sin CORS_ORIGIN explícito se aceptan todos los orígenes
    if app_settings.environment == "production" and not cors_origin_configured:
        logger.warning("⚠️ CORS_ORIGIN no configurado en producción, permitiendo todos los orígenes")
        allowed_origins = ["*"]

    return allowed_origins


def create_app() -> FastAPI:
    """Crea la aplicación con su propio VisitorStore (uno por proceso)."""
    app_settings = get_settings()
    app = FastAPI(title=app_settings.app_name, version="0.1.0", redirect_slashes=False)

    allowed_origins = build_allowed_origins()
    logger.info(f"🌐 Orígenes CORS permitidos: {allowed_origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins if "*" not in allowed_origins else ["*"],
        allow_credentials="*" not in allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Store en memoria: vive lo que vive el proceso
    app.state.store = VisitorStore()

    app.include_router(tracking.router)
    app.include_router(stats.router)

    @app.get("/", include_in_schema=False)
    def root():
        return RedirectResponse(url=get_settings().dashboard_path)

    return app


app = create_app()


def run():
    """Levanta el servidor en 0.0.0.0 con el puerto de PORT (por defecto 3000)."""
    import uvicorn

    app_settings = get_settings()
    logger.info("=" * 60)
    logger.info("🚀 SERVIDOR DE TRACKING INICIADO")
    logger.info(f"📍 Puerto: {app_settings.port}")
    logger.info(f"🌐 Ambiente: {app_settings.environment}")
    logger.info("=" * 60)
    uvicorn.run(app, host="0.0.0.0", port=app_settings.port)


if __name__ == "__main__":
    run()
