from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, TypeVar
from sqlalchemy import select
from sqlalchemy.orm import Session

from nearandnow.core_settings import get_settings
from nearandnow.domain.models import Product
from shared.core import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

@dataclass(frozen=True)
class Availability:
    store_id: int
    product_id: int             # catalog (master) product
    inventory_record_id: int    # store-scoped products row

def chunk(items: Sequence[T], size: int) -> list[list[T]]:
    return [list(items[i:i + size]) for i in range(0, len(items), size)]

class AvailabilityIndex:
    """Which candidate stores stock which catalog products."""

    def __init__(self, db: Session, chunk_size: Optional[int] = None):
        self.db = db
        self.chunk_size = chunk_size or get_settings().IN_FILTER_CHUNK_SIZE

    def find_availability(self, store_ids: Iterable[int], product_ids: Iterable[int]) -> list[Availability]:
        """Active (store, product) pairs, paging both id lists to keep IN filters bounded."""
        stores = sorted(set(store_ids))
        products = sorted(set(product_ids))
        if not stores or not products:
            return []

        found: dict[tuple[int, int], Availability] = {}
        for store_chunk in chunk(stores, self.chunk_size):
            for product_chunk in chunk(products, self.chunk_size):
                stmt = select(Product.id, Product.store_id, Product.master_product_id).where(
                    Product.is_active.is_(True),
                    Product.store_id.in_(store_chunk),
                    Product.master_product_id.in_(product_chunk),
                )
                for row in self.db.execute(stmt):
                    found[(row.store_id, row.master_product_id)] = Availability(
                        store_id=row.store_id,
                        product_id=row.master_product_id,
                        inventory_record_id=row.id,
                    )

        logger.debug(
            f"Resolved {len(found)} availability pairs",
            extra={'extra_fields': {'stores': len(stores), 'products': len(products)}}
        )
        return sorted(found.values(), key=lambda a: (a.store_id, a.product_id))

    def inventory_records_for_store(self, store_id: int, product_ids: Iterable[int]) -> dict[int, int]:
        """Map catalog product id -> active inventory record id at one store."""
        return {
            a.product_id: a.inventory_record_id
            for a in self.find_availability([store_id], product_ids)
        }
