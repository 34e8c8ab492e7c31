"""Address geocoding against a Nominatim-compatible search API."""

from dataclasses import dataclass
from typing import Optional
import httpx

from nearandnow.core_settings import get_settings
from shared.core import get_logger

logger = get_logger(__name__)

@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float

class Geocoder:
    def __init__(self, url: Optional[str] = None, timeout: Optional[float] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        settings = get_settings()
        self.url = url or settings.GEOCODER_URL
        self.timeout = timeout if timeout is not None else settings.GEOCODER_TIMEOUT
        self.user_agent = settings.GEOCODER_USER_AGENT
        self.transport = transport

    def geocode(self, address: str) -> Optional[Coordinates]:
        """Resolve free-text address to coordinates; None when nothing matches or the provider fails."""
        if not address or not address.strip():
            return None
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport,
                              headers={"User-Agent": self.user_agent}) as client:
                response = client.get(self.url, params={"q": address, "format": "json", "limit": 1})
                if response.status_code != 200:
                    logger.warning(
                        f"Geocoder returned {response.status_code}",
                        extra={'extra_fields': {'address': address, 'status_code': response.status_code}}
                    )
                    return None
                results = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Geocoding failed: {e}", extra={'extra_fields': {'address': address}})
            return None

        if not results:
            return None
        first = results[0]
        try:
            return Coordinates(lat=float(first["lat"]), lng=float(first["lon"]))
        except (KeyError, TypeError, ValueError):
            logger.warning("Geocoder response missing coordinates", extra={'extra_fields': {'address': address}})
            return None
