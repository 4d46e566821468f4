import ipaddress
import logging
from typing import Optional

import httpx
from pydantic import BaseModel

from snaplink.config import settings
from snaplink.json_utils import loads_object

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"


class GeoLocation(BaseModel):
    country: str = UNKNOWN
    city: str = UNKNOWN
    region: str = UNKNOWN


class GeoLocator:
    """Базовый провайдер геолокации: по умолчанию ничего не знает"""

    def lookup(self, ip_address: Optional[str]) -> GeoLocation:
        return GeoLocation()

    def close(self) -> None:
        pass


class NullGeoLocator(GeoLocator):
    pass


def is_public_ip(ip_address: Optional[str]) -> bool:
    try:
        ip = ipaddress.ip_address(ip_address or "")
    except ValueError:
        return False
    return ip.is_global


class IpApiGeoLocator(GeoLocator):
    """Определяет страну и город через HTTP API формата ip-api.com"""

    def __init__(self, base_url: str = settings.GEOIP_URL, timeout: float = settings.GEOIP_TIMEOUT,
                 client: Optional[httpx.Client] = None):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.Client(timeout=timeout)

    def lookup(self, ip_address: Optional[str]) -> GeoLocation:
        if not is_public_ip(ip_address):
            return GeoLocation()

        response = self.client.get(f"{self.base_url}/{ip_address}")
        response.raise_for_status()
        data = loads_object(response.content)

        if data.get("status", "success") != "success":
            return GeoLocation()

        return GeoLocation(
            country=data.get("country") or UNKNOWN,
            city=data.get("city") or UNKNOWN,
            region=data.get("regionName") or data.get("region") or UNKNOWN,
        )

    def close(self) -> None:
        self.client.close()


def safe_lookup(geolocator: Optional[GeoLocator], ip_address: Optional[str]) -> GeoLocation:
    """Геолокация, которая никогда не падает: при любой ошибке возвращает Unknown"""
    if geolocator is None:
        return GeoLocation()
    try:
        return geolocator.lookup(ip_address)
    except Exception as e:
        logger.warning("Геолокация для %s недоступна: %s", ip_address, e)
        return GeoLocation()


def build_geolocator(provider: str = settings.GEOIP_PROVIDER) -> GeoLocator:
    """Создает провайдера геолокации по имени из настроек"""
    if provider == "ip-api":
        return IpApiGeoLocator()
    if provider not in ("", "none"):
        logger.warning("Неизвестный провайдер геолокации %r, геолокация отключена", provider)
    return NullGeoLocator()
