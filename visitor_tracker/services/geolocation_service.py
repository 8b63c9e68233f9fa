"""
Servicio de geolocalización por IP con cadena de proveedores.

Orden de intento (el primero que responde bien gana, sin reintentos ni
consultas en paralelo porque los proveedores tienen rate limit):
1. ipapi.co      - esquema completo
2. ip-api.com    - ciudad/región/país/zona horaria/org/coordenadas
3. ipify.org     - solo IP, el resto queda como "N/D"
Si los tres fallan se devuelve un registro con todos los campos en "N/D".

Después se corrige la región usando el geocoding de open-meteo.
"""
import logging
from typing import List, Optional

import httpx
from pydantic import BaseModel, ValidationError

from ..config import get_settings
from ..utils import NOT_AVAILABLE, is_sentinel

logger = logging.getLogger(__name__)


class GeoLocation(BaseModel):
    """Datos de ubicación normalizados, independientes del proveedor."""

    ip: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    country_code: Optional[str] = None
    country_name: Optional[str] = None
    timezone: Optional[str] = None
    utc_offset: Optional[str] = None
    org: Optional[str] = None
    country_population: Optional[int] = None
    country_calling_code: Optional[str] = None
    currency_name: Optional[str] = None
    currency: Optional[str] = None
    languages: Optional[str] = None
    country_capital: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    provider: str = "none"

    @classmethod
    def unavailable(cls, ip: Optional[str] = None, provider: str = "none") -> "GeoLocation":
        return cls(
            ip=ip,
            city=NOT_AVAILABLE,
            region=NOT_AVAILABLE,
            country_code=NOT_AVAILABLE,
            country_name=NOT_AVAILABLE,
            org=NOT_AVAILABLE,
            provider=provider,
        )


class ProviderResult(BaseModel):
    """Resultado tipado de un proveedor: éxito con ubicación o fallo con motivo."""

    provider: str
    ok: bool
    location: Optional[GeoLocation] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, provider: str, location: GeoLocation) -> "ProviderResult":
        return cls(provider=provider, ok=True, location=location)

    @classmethod
    def failure(cls, provider: str, error: str) -> "ProviderResult":
        return cls(provider=provider, ok=False, error=error)


class LocationCorrection(BaseModel):
    corrected_region: Optional[str] = None
    corrected_country: Optional[str] = None


class GeoProvider:
    """Estrategia base: GET a la URL del proveedor y normalización de la respuesta."""

    name = "base"

    def __init__(self, url: str):
        self.url = url

    async def lookup(self, client: httpx.AsyncClient) -> ProviderResult:
        try:
            response = await client.get(self.url)
        except httpx.HTTPError as e:
            return ProviderResult.failure(self.name, f"request error: {e!r}")

        if not response.is_success:
            return ProviderResult.failure(self.name, f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            return ProviderResult.failure(self.name, "respuesta no es JSON válido")

        if not isinstance(data, dict):
            return ProviderResult.failure(self.name, "esquema inesperado")

        try:
            return self.parse(data)
        except ValidationError as e:
            return ProviderResult.failure(self.name, f"esquema inválido: {e.error_count()} errores")

    def parse(self, data: dict) -> ProviderResult:
        raise NotImplementedError


class IpapiProvider(GeoProvider):
    name = "ipapi.co"

    def parse(self, data: dict) -> ProviderResult:
        if data.get("error") or not data.get("ip"):
            return ProviderResult.failure(self.name, data.get("reason") or "limitado o sin IP")
        location = GeoLocation(
            ip=data.get("ip"),
            city=data.get("city"),
            region=data.get("region"),
            country_code=data.get("country_code"),
            country_name=data.get("country_name"),
            timezone=data.get("timezone"),
            utc_offset=data.get("utc_offset"),
            org=data.get("org"),
            country_population=data.get("country_population"),
            country_calling_code=data.get("country_calling_code"),
            currency_name=data.get("currency_name"),
            currency=data.get("currency"),
            languages=data.get("languages"),
            country_capital=data.get("country_capital"),
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            provider=self.name,
        )
        return ProviderResult.success(self.name, location)


class IpApiComProvider(GeoProvider):
    name = "ip-api.com"

    def parse(self, data: dict) -> ProviderResult:
        if data.get("status") != "success":
            return ProviderResult.failure(self.name, data.get("message") or "status != success")
        if not data.get("query"):
            return ProviderResult.failure(self.name, "sin IP en la respuesta")
        # Los campos que este proveedor no ofrece quedan en None
        location = GeoLocation(
            ip=data.get("query"),
            city=data.get("city"),
            region=data.get("regionName"),
            country_code=data.get("countryCode"),
            country_name=data.get("country"),
            timezone=data.get("timezone"),
            org=data.get("isp"),
            latitude=data.get("lat"),
            longitude=data.get("lon"),
            provider=self.name,
        )
        return ProviderResult.success(self.name, location)


class IpifyProvider(GeoProvider):
    name = "ipify.org"

    def parse(self, data: dict) -> ProviderResult:
        if not data.get("ip"):
            return ProviderResult.failure(self.name, "sin IP en la respuesta")
        return ProviderResult.success(self.name, GeoLocation.unavailable(ip=data["ip"], provider=self.name))


def default_providers() -> List[GeoProvider]:
    settings = get_settings()
    return [
        IpapiProvider(settings.geo_primary_url),
        IpApiComProvider(settings.geo_secondary_url),
        IpifyProvider(settings.geo_tertiary_url),
    ]


async def _resolve_with(client: httpx.AsyncClient, providers: List[GeoProvider]) -> GeoLocation:
    for provider in providers:
        result = await provider.lookup(client)
        if result.ok and result.location is not None:
            logger.info(f"[GEO] ✅ {provider.name} resolvió IP {result.location.ip}")
            return result.location
        logger.warning(f"[GEO] ⚠️ {provider.name} falló ({result.error}), probando el siguiente...")

    logger.warning("[GEO] ❌ Todos los proveedores fallaron, usando datos no disponibles")
    return GeoLocation.unavailable()


async def resolve_location(
    client: Optional[httpx.AsyncClient] = None,
    providers: Optional[List[GeoProvider]] = None,
) -> GeoLocation:
    """
    Obtiene la ubicación del visitante recorriendo la cadena de proveedores.
    Nunca lanza excepciones.

    Args:
        client: cliente httpx a reutilizar (si no se pasa, se crea uno)
        providers: lista ordenada de estrategias (por defecto las tres configuradas)
    """
    providers = providers if providers is not None else default_providers()
    if client is not None:
        return await _resolve_with(client, providers)

    timeout = get_settings().geo_timeout_seconds
    async with httpx.AsyncClient(timeout=timeout) as own_client:
        return await _resolve_with(own_client, providers)


async def _correct_with(
    client: httpx.AsyncClient, city: str, country_code: Optional[str], region: Optional[str]
) -> LocationCorrection:
    settings = get_settings()
    params = {"name": city, "count": 10, "language": settings.geocoding_language}
    response = await client.get(settings.geocoding_url, params=params)
    response.raise_for_status()
    data = response.json()

    for candidate in data.get("results") or []:
        if candidate.get("country_code") == country_code:
            return LocationCorrection(
                corrected_region=candidate.get("admin1") or region,
                corrected_country=candidate.get("country"),
            )
    return LocationCorrection(corrected_region=region)


async def correct_location(
    city: Optional[str],
    country_code: Optional[str],
    region: Optional[str],
    client: Optional[httpx.AsyncClient] = None,
) -> LocationCorrection:
    """
    Corrige la región (estado/provincia) buscando la ciudad en el geocoding.
    Se elige el primer resultado cuyo código de país coincide.
    Sin ciudad o sin código de país no se consulta nada.
    Si no hay coincidencia o la consulta falla, se mantiene la región original.
    """
    if is_sentinel(city) or is_sentinel(country_code):
        return LocationCorrection(corrected_region=region)

    try:
        if client is not None:
            correction = await _correct_with(client, city, country_code, region)
        else:
            timeout = get_settings().geo_timeout_seconds
            async with httpx.AsyncClient(timeout=timeout) as own_client:
                correction = await _correct_with(own_client, city, country_code, region)
    except (httpx.HTTPError, ValueError, AttributeError) as e:
        logger.warning(f"[GEO] ⚠️ Error al corregir localización de {city}: {e!r}")
        return LocationCorrection(corrected_region=region)

    logger.info(f"[GEO] Región corregida: {region} → {correction.corrected_region}")
    return correction
