import math
from typing import Optional
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from nearandnow.core_settings import get_settings
from nearandnow.domain.models import Store
from shared.core import get_logger

logger = get_logger(__name__)

EARTH_RADIUS_KM = 6371.0088
KM_PER_DEGREE_LAT = 111.32

def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))

def _valid_coordinates(lat, lng) -> bool:
    return (
        isinstance(lat, (int, float)) and isinstance(lng, (int, float))
        and not math.isnan(lat) and not math.isnan(lng)
        and -90 <= lat <= 90 and -180 <= lng <= 180
    )

class StoreLocator:
    """Finds active stores within a delivery radius."""

    def __init__(self, db: Session):
        self.db = db

    def find_stores_within(self, lat: float, lng: float, radius_km: Optional[float] = None) -> list[int]:
        """Return ids of active stores within ``radius_km`` of (lat, lng), ascending by id.

        The ascending-id ordering is the candidate order the allocation engine
        iterates in. Any failure degrades to an empty list.
        """
        if radius_km is None:
            radius_km = get_settings().DELIVERY_RADIUS_KM
        if not _valid_coordinates(lat, lng) or radius_km <= 0:
            logger.warning(
                "Store lookup skipped: invalid coordinates or radius",
                extra={'extra_fields': {'lat': lat, 'lng': lng, 'radius_km': radius_km}}
            )
            return []

        # Coarse bounding box in SQL, exact great-circle distance below
        dlat = radius_km / KM_PER_DEGREE_LAT
        stmt = select(Store.id, Store.latitude, Store.longitude).where(
            Store.is_active.is_(True),
            Store.latitude.between(lat - dlat, lat + dlat),
        )
        cos_lat = math.cos(math.radians(lat))
        if cos_lat > 1e-6:
            dlng = radius_km / (KM_PER_DEGREE_LAT * cos_lat)
            # Near the antimeridian the box would wrap; rely on haversine alone there
            if -180 <= lng - dlng and lng + dlng <= 180:
                stmt = stmt.where(Store.longitude.between(lng - dlng, lng + dlng))

        try:
            rows = self.db.execute(stmt).all()
        except SQLAlchemyError as e:
            logger.error(f"Nearby store query failed: {e}",
                         extra={'extra_fields': {'lat': lat, 'lng': lng, 'radius_km': radius_km}})
            return []

        store_ids = sorted(
            row.id for row in rows
            if haversine_km(lat, lng, row.latitude, row.longitude) <= radius_km
        )
        logger.info(
            f"Found {len(store_ids)} stores within {radius_km}km",
            extra={'extra_fields': {'lat': lat, 'lng': lng, 'store_ids': store_ids}}
        )
        return store_ids
