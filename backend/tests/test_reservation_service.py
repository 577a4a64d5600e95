"""
Tests for reservation admission and cancellation at the service layer.

These go straight to the services with real sessions, so two sessions can
race for the same slot the way two web workers would.
"""

import asyncio
from datetime import date, time

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from tablebook.core.exceptions import (
    NotFoundOrForbiddenError,
    ReservationValidationError,
    SlotConflictError,
    TransientInfraError,
    ValidationRule,
)
from tablebook.infrastructure import reservation_store
from tablebook.infrastructure.db_errors import database_errors
from tablebook.models.reservation import STATUS_ACTIVE, STATUS_CANCELLED, Reservation
from tablebook.services import availability_service, reservation_service
from tablebook.services.reservation_service import AdmissionState
from tablebook.services.reservation_validator import ReservationRequest

TOMORROW = "2030-06-02"


def _request(table_id=3, at="19:00", party_size=2, day=TOMORROW):
    return ReservationRequest(party_size=party_size, table_id=table_id, date=day, time=at)


async def _active_count(session_factory, table_id=3, at=time(19, 0)) -> int:
    async with session_factory() as session:
        result = await session.execute(
            select(func.count(Reservation.id)).where(
                Reservation.table_id == table_id,
                Reservation.reservation_date == date(2030, 6, 2),
                Reservation.reservation_time == at,
                Reservation.status == STATUS_ACTIVE,
            )
        )
        return result.scalar_one()


class TestAdmission:
    """Tests for admit_reservation."""

    @pytest.mark.asyncio
    async def test_commits_free_slot(self, db_session, session_factory, test_account, now, rules):
        result = await reservation_service.admit_reservation(db_session, test_account.id, _request(), now, rules)

        assert result.committed
        assert result.state is AdmissionState.COMMITTED
        assert result.error is None
        assert result.reservation.id is not None
        assert result.reservation.account_id == test_account.id
        assert result.reservation.status == STATUS_ACTIVE
        assert await _active_count(session_factory) == 1

    @pytest.mark.asyncio
    async def test_validation_failure_touches_nothing(self, db_session, session_factory, test_account, now, rules):
        result = await reservation_service.admit_reservation(
            db_session, test_account.id, _request(table_id=11), now, rules
        )

        assert not result.committed
        assert result.rejected_at is AdmissionState.RECEIVED
        assert isinstance(result.error, ReservationValidationError)
        assert result.error.rule is ValidationRule.TABLE_ID_OUT_OF_RANGE
        assert await _active_count(session_factory, table_id=11) == 0

    @pytest.mark.asyncio
    async def test_taken_slot_rejected_every_time(self, db_session, session_factory, test_account, other_account, now, rules):
        first = await reservation_service.admit_reservation(db_session, test_account.id, _request(), now, rules)
        assert first.committed

        for _ in range(3):
            again = await reservation_service.admit_reservation(db_session, other_account.id, _request(), now, rules)
            assert not again.committed
            assert again.rejected_at is AdmissionState.VALIDATED
            assert isinstance(again.error, SlotConflictError)
            assert again.error.status_code == 409

        assert await _active_count(session_factory) == 1

    @pytest.mark.asyncio
    async def test_same_account_cannot_book_slot_twice(self, db_session, test_account, now, rules):
        await reservation_service.admit_reservation(db_session, test_account.id, _request(), now, rules)
        again = await reservation_service.admit_reservation(db_session, test_account.id, _request(), now, rules)

        assert isinstance(again.error, SlotConflictError)

    @pytest.mark.asyncio
    async def test_neighbouring_slots_are_independent(self, db_session, test_account, now, rules):
        results = [
            await reservation_service.admit_reservation(db_session, test_account.id, request, now, rules)
            for request in (_request(), _request(table_id=4), _request(at="19:30"), _request(day="2030-06-03"))
        ]

        assert all(r.committed for r in results)

    @pytest.mark.asyncio
    async def test_stale_precheck_loses_to_constraint(
        self, db_session, session_factory, test_account, other_account, now, rules, monkeypatch
    ):
        """The pre-check says free, but the slot was taken: the insert decides."""
        async with session_factory() as other_session:
            winner = await reservation_service.admit_reservation(
                other_session, other_account.id, _request(), now, rules
            )
        assert winner.committed

        async def always_free(db, slot):
            return False

        monkeypatch.setattr(availability_service, "is_slot_taken", always_free)

        loser = await reservation_service.admit_reservation(db_session, test_account.id, _request(), now, rules)

        assert not loser.committed
        assert loser.rejected_at is AdmissionState.CHECKED
        assert isinstance(loser.error, SlotConflictError)
        assert loser.error.code == "SLOT_ALREADY_BOOKED"
        assert await _active_count(session_factory) == 1

    @pytest.mark.asyncio
    async def test_session_usable_after_lost_race(self, db_session, session_factory, test_account, other_account, now, rules, monkeypatch):
        async with session_factory() as other_session:
            await reservation_service.admit_reservation(other_session, other_account.id, _request(), now, rules)

        async def always_free(db, slot):
            return False

        monkeypatch.setattr(availability_service, "is_slot_taken", always_free)
        await reservation_service.admit_reservation(db_session, test_account.id, _request(), now, rules)

        retry_elsewhere = await reservation_service.admit_reservation(
            db_session, test_account.id, _request(table_id=5), now, rules
        )
        assert retry_elsewhere.committed

    @pytest.mark.asyncio
    async def test_concurrent_admissions_commit_exactly_one(self, session_factory, test_account, other_account, now, rules):
        async def attempt(account_id):
            async with session_factory() as session:
                return await reservation_service.admit_reservation(session, account_id, _request(), now, rules)

        results = await asyncio.gather(attempt(test_account.id), attempt(other_account.id))

        committed = [r for r in results if r.committed]
        rejected = [r for r in results if not r.committed]
        assert len(committed) == 1
        assert len(rejected) == 1
        assert isinstance(rejected[0].error, SlotConflictError)
        assert rejected[0].rejected_at in (AdmissionState.VALIDATED, AdmissionState.CHECKED)
        assert await _active_count(session_factory) == 1

    @pytest.mark.asyncio
    async def test_database_outage_is_transient_error(self, db_session, test_account, now, rules, monkeypatch):
        async def unreachable(*args, **kwargs):
            with database_errors("find_active_reservation"):
                raise OperationalError("SELECT 1", {}, ConnectionRefusedError("connection refused"))

        monkeypatch.setattr(reservation_store, "find_active_reservation", unreachable)

        with pytest.raises(TransientInfraError) as exc_info:
            await reservation_service.admit_reservation(db_session, test_account.id, _request(), now, rules)

        assert exc_info.value.status_code == 503
        assert exc_info.value.service == "database"


class TestCancellation:
    """Tests for cancel_reservation."""

    @pytest.mark.asyncio
    async def test_cancel_frees_the_slot(self, db_session, session_factory, test_account, other_account, now, rules):
        await reservation_service.admit_reservation(db_session, test_account.id, _request(), now, rules)

        cancelled = await reservation_service.cancel_reservation(db_session, test_account.id, 3, TOMORROW, "19:00")

        assert cancelled.status == STATUS_CANCELLED
        assert cancelled.cancelled_at is not None
        assert await _active_count(session_factory) == 0

        rebooked = await reservation_service.admit_reservation(db_session, other_account.id, _request(), now, rules)
        assert rebooked.committed
        assert rebooked.reservation.id != cancelled.id

    @pytest.mark.asyncio
    async def test_cannot_cancel_another_accounts_reservation(self, db_session, session_factory, test_account, other_account, now, rules):
        await reservation_service.admit_reservation(db_session, test_account.id, _request(), now, rules)

        with pytest.raises(NotFoundOrForbiddenError):
            await reservation_service.cancel_reservation(db_session, other_account.id, 3, TOMORROW, "19:00")

        assert await _active_count(session_factory) == 1

    @pytest.mark.asyncio
    async def test_cancel_free_slot_is_not_found(self, db_session, test_account):
        with pytest.raises(NotFoundOrForbiddenError):
            await reservation_service.cancel_reservation(db_session, test_account.id, 3, TOMORROW, "19:00")

    @pytest.mark.asyncio
    async def test_second_cancel_is_not_found(self, db_session, test_account, now, rules):
        await reservation_service.admit_reservation(db_session, test_account.id, _request(), now, rules)
        await reservation_service.cancel_reservation(db_session, test_account.id, "3", TOMORROW, "19:00")

        with pytest.raises(NotFoundOrForbiddenError):
            await reservation_service.cancel_reservation(db_session, test_account.id, "3", TOMORROW, "19:00")

    @pytest.mark.asyncio
    async def test_malformed_slot_key(self, db_session, test_account):
        with pytest.raises(ReservationValidationError) as exc_info:
            await reservation_service.cancel_reservation(db_session, test_account.id, 3, "tomorrow", "19:00")
        assert exc_info.value.rule is ValidationRule.INVALID_DATE

        with pytest.raises(ReservationValidationError) as exc_info:
            await reservation_service.cancel_reservation(db_session, test_account.id, 3, TOMORROW, "7pm")
        assert exc_info.value.rule is ValidationRule.INVALID_TIME

        with pytest.raises(NotFoundOrForbiddenError):
            await reservation_service.cancel_reservation(db_session, test_account.id, "three", TOMORROW, "19:00")


class TestListing:
    @pytest.mark.asyncio
    async def test_lists_only_own_active_reservations(self, db_session, test_account, other_account, now, rules):
        await reservation_service.admit_reservation(db_session, test_account.id, _request(at="21:00"), now, rules)
        await reservation_service.admit_reservation(db_session, test_account.id, _request(at="19:00"), now, rules)
        await reservation_service.admit_reservation(db_session, test_account.id, _request(table_id=7), now, rules)
        await reservation_service.admit_reservation(db_session, other_account.id, _request(table_id=8), now, rules)
        await reservation_service.cancel_reservation(db_session, test_account.id, 7, TOMORROW, "19:00")

        active = await reservation_service.list_account_reservations(db_session, test_account.id)
        everything = await reservation_service.list_account_reservations(
            db_session, test_account.id, include_cancelled=True
        )

        assert [(r.table_id, r.reservation_time) for r in active] == [(3, time(19, 0)), (3, time(21, 0))]
        assert len(everything) == 3
        assert all(r.account_id == test_account.id for r in everything)


class TestAvailability:
    @pytest.mark.asyncio
    async def test_free_tables_excludes_active_only(self, db_session, test_account, now, rules):
        await reservation_service.admit_reservation(db_session, test_account.id, _request(table_id=2), now, rules)
        await reservation_service.admit_reservation(db_session, test_account.id, _request(table_id=9), now, rules)
        await reservation_service.cancel_reservation(db_session, test_account.id, 9, TOMORROW, "19:00")

        free = await availability_service.free_tables(db_session, date(2030, 6, 2), time(19, 0), rules.table_amount)

        assert free == [1, 3, 4, 5, 6, 7, 8, 9, 10]
