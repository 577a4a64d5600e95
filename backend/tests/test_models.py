"""
Tests for the mapped schema.
"""

from sqlalchemy import inspect

from tablebook.models.account import Account
from tablebook.models.reservation import ACTIVE_SLOT_INDEX, Reservation


def test_models_map_columns_only():
    assert list(inspect(Account).relationships) == []
    assert list(inspect(Reservation).relationships) == []


def test_active_slot_index_is_partial_and_unique():
    index = next(i for i in Reservation.__table__.indexes if i.name == ACTIVE_SLOT_INDEX)

    assert index.unique is True
    assert [c.name for c in index.columns] == ["table_id", "reservation_date", "reservation_time"]
    assert index.dialect_options["postgresql"]["where"] is not None
    assert index.dialect_options["sqlite"]["where"] is not None
