# tests/unit/models/test_reservation_model.py
from datetime import datetime, timedelta, timezone

import pytest

from dropstock.core.enums import ReservationStatus
from dropstock.core.exceptions import StateConflictError
from dropstock.models.drop import Drop
from dropstock.models.purchase import Purchase
from dropstock.models.reservation import Reservation

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_reservation(status=ReservationStatus.ACTIVE, expires_in=60):
    return Reservation(
        id=1,
        holder_id="user-1",
        drop_id=1,
        status=status.value,
        expires_at=NOW + timedelta(seconds=expires_in),
    )


@pytest.mark.parametrize("target", [ReservationStatus.EXPIRED, ReservationStatus.COMPLETED])
def test_active_can_leave_to_terminal_states(target):
    reservation = make_reservation()

    reservation.transition_to(target)

    assert reservation.status == target.value
    assert reservation.status_enum.is_terminal


@pytest.mark.parametrize("current", [ReservationStatus.EXPIRED, ReservationStatus.COMPLETED])
@pytest.mark.parametrize("target", list(ReservationStatus))
def test_terminal_states_never_move(current, target):
    reservation = make_reservation(status=current)

    with pytest.raises(StateConflictError):
        reservation.transition_to(target)

    assert reservation.status == current.value


def test_active_to_active_is_rejected():
    with pytest.raises(StateConflictError):
        make_reservation().transition_to(ReservationStatus.ACTIVE)


def test_deadline_boundaries():
    reservation = make_reservation(expires_in=60)

    assert reservation.is_active(NOW + timedelta(seconds=59))
    assert not reservation.deadline_passed(NOW + timedelta(seconds=59, milliseconds=999))
    assert reservation.deadline_passed(NOW + timedelta(seconds=60))
    assert reservation.is_expired(NOW + timedelta(seconds=60))
    assert not reservation.is_active(NOW + timedelta(seconds=60))


def test_naive_deadline_is_treated_as_utc():
    reservation = make_reservation()
    reservation.expires_at = (NOW + timedelta(seconds=10)).replace(tzinfo=None)

    assert reservation.remaining_seconds(NOW) == 10


def test_remaining_seconds_never_negative():
    reservation = make_reservation(expires_in=5)

    assert reservation.remaining_seconds(NOW) == 5
    assert reservation.remaining_seconds(NOW + timedelta(minutes=5)) == 0


def test_expired_status_is_expired_regardless_of_clock():
    reservation = make_reservation(status=ReservationStatus.EXPIRED, expires_in=600)

    assert reservation.is_expired(NOW)
    assert not reservation.is_active(NOW)


def test_drop_start_gate_and_stock_percentage():
    drop = Drop(id=1, name="Drop", price=10, stock=1, initial_stock=4, starts_at=NOW)

    assert not drop.has_started(NOW - timedelta(seconds=1))
    assert drop.has_started(NOW)
    assert drop.stock_percentage == 25
    assert drop.is_available

    drop.starts_at = None
    assert drop.has_started(NOW - timedelta(days=1))


@pytest.mark.parametrize("model", [Reservation, Purchase])
def test_deleting_a_drop_never_cascades(model):
    (foreign_key,) = model.__table__.c.drop_id.foreign_keys

    assert foreign_key.ondelete == "RESTRICT"
