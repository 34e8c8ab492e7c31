from datetime import date
from typing import Optional
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from nearandnow.core_settings import get_settings
from nearandnow.domain.models import OrderSequence
from shared.core import get_logger
from .errors import SequenceGenerationError

logger = get_logger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

def date_prefix(day: Optional[date] = None, brand: Optional[str] = None) -> str:
    """Brand tag + YYYYMMDD, e.g. NN20250601."""
    day = day or date.today()
    brand = brand or get_settings().ORDER_CODE_BRAND
    return f"{brand}{day:%Y%m%d}"

class OrderNumberGenerator:
    """Mints date-scoped order codes like NN202506010001.

    The counter row is bumped with a single INSERT ... ON CONFLICT DO UPDATE
    ... RETURNING statement, so the row lock taken by the datastore serializes
    concurrent callers sharing a prefix. The increment is committed right away
    and is not part of the placement transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def next_sequence(self, prefix: str) -> int:
        dialect = self.db.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise SequenceGenerationError(
                f"Atomic order sequence not supported on '{dialect}'", step="order_code"
            )

        table = OrderSequence.__table__
        stmt = insert(table).values(prefix=prefix, last_value=1)
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.prefix],
            set_={"last_value": table.c.last_value + 1},
        ).returning(table.c.last_value)

        try:
            value = self.db.execute(stmt).scalar_one()
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Order sequence increment failed for {prefix}: {e}",
                         extra={'extra_fields': {'prefix': prefix}})
            raise SequenceGenerationError(
                f"Failed to generate order number: {e.__class__.__name__}", step="order_code"
            ) from e
        return value

    def next_order_code(self, prefix: Optional[str] = None) -> str:
        prefix = prefix or date_prefix()
        code = f"{prefix}{self.next_sequence(prefix):04d}"
        logger.info(f"Generated order code {code}", extra={'extra_fields': {'order_code': code}})
        return code
