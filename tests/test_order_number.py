import re
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from nearandnow.application.errors import SequenceGenerationError
from nearandnow.application.order_number import OrderNumberGenerator, date_prefix


def test_date_prefix_format():
    assert date_prefix(date(2025, 6, 1), brand="NN") == "NN20250601"


def test_default_prefix_uses_today():
    assert date_prefix() == f"NN{date.today():%Y%m%d}"


def test_codes_increment_per_prefix(db):
    generator = OrderNumberGenerator(db)

    assert generator.next_order_code("NN20250601") == "NN202506010001"
    assert generator.next_order_code("NN20250601") == "NN202506010002"
    assert generator.next_order_code("NN20250601") == "NN202506010003"


def test_sequence_resets_for_a_new_date(db):
    generator = OrderNumberGenerator(db)
    generator.next_order_code("NN20250601")
    generator.next_order_code("NN20250601")

    assert generator.next_order_code("NN20250602") == "NN202506020001"


def test_default_code_shape(db):
    code = OrderNumberGenerator(db).next_order_code()

    assert re.fullmatch(r"NN\d{12}", code)


def test_concurrent_callers_get_distinct_gapless_codes(session_factory):
    def mint(_):
        session = session_factory()
        try:
            return OrderNumberGenerator(session).next_order_code("NN20250601")
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=8) as pool:
        codes = list(pool.map(mint, range(40)))

    assert len(set(codes)) == 40
    assert sorted(codes) == [f"NN20250601{n:04d}" for n in range(1, 41)]


def test_datastore_failure_raises_sequence_error():
    session = MagicMock()
    session.get_bind.return_value.dialect.name = "postgresql"
    session.execute.side_effect = OperationalError("UPDATE", {}, Exception("could not obtain lock"))

    with pytest.raises(SequenceGenerationError):
        OrderNumberGenerator(session).next_order_code("NN20250601")
    session.rollback.assert_called_once()


def test_unsupported_dialect_raises_sequence_error():
    session = MagicMock()
    session.get_bind.return_value.dialect.name = "mssql"

    with pytest.raises(SequenceGenerationError):
        OrderNumberGenerator(session).next_sequence("NN20250601")
    session.execute.assert_not_called()
