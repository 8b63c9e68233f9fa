import os


class Settings:
    """Configuración de la aplicación que lee variables de entorno dinámicamente."""

    @property
    def app_name(self) -> str:
        return "Visitor Tracker"

    @property
    def environment(self) -> str:
        # Detectar producción por ENV o por la presencia de PORT (Render/Railway)
        env = os.getenv("ENV", "").lower()
        if env == "production" or os.getenv("PORT"):
            return "production"
        return "development"

    @property
    def port(self) -> int:
        return int(os.getenv("PORT", "3000"))

    @property
    def cors_origin(self) -> str:
        return os.getenv("CORS_ORIGIN", "http://localhost:3000")

    @property
    def dashboard_path(self) -> str:
        return os.getenv("DASHBOARD_PATH", "/dashboard.html")

    @property
    def sessions_default_limit(self) -> int:
        return int(os.getenv("SESSIONS_DEFAULT_LIMIT", "50"))

    # --- Proveedores externos de geolocalización ---

    @property
    def geo_primary_url(self) -> str:
        return os.getenv("GEO_PRIMARY_URL", "https://ipapi.co/json/")

    @property
    def geo_secondary_url(self) -> str:
        return os.getenv("GEO_SECONDARY_URL", "http://ip-api.com/json/")

    @property
    def geo_tertiary_url(self) -> str:
        return os.getenv("GEO_TERTIARY_URL", "https://api.ipify.org/?format=json")

    @property
    def geocoding_url(self) -> str:
        return os.getenv("GEOCODING_URL", "https://geocoding-api.open-meteo.com/v1/search")

    @property
    def geocoding_language(self) -> str:
        return os.getenv("GEOCODING_LANGUAGE", "pt")

    @property
    def geo_timeout_seconds(self) -> float:
        return float(os.getenv("GEO_TIMEOUT_SECONDS", "10"))

    @property
    def track_api_url(self) -> str:
        return os.getenv("TRACK_API_URL", "http://localhost:3000/api/track")


# Instancia singleton de Settings (sin cache, lee valores dinámicamente)
_settings_instance = None


def get_settings() -> Settings:
    """Retorna la instancia de Settings. Lee variables de entorno dinámicamente."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance


def clear_settings_cache():
    """Limpia la instancia de settings (aunque no es necesario con propiedades dinámicas)."""
    global _settings_instance
    _settings_instance = None
