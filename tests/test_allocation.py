"""
Allocation policy and seat label tests
These run without a store
"""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.allocation import AllocationPolicy
from backend.seat_pool import SeatPool
from database import InsufficientCapacity, InvalidArgument, Seat, SeatState


def _seat(seat_id, label, free=True, booking_id=None):
    return Seat(id=seat_id, flight_id=1, seat_number=label, is_available=free,
                booking_id=None if free else booking_id)


class TestFirstFit:
    """First fit by ascending label"""

    def test_picks_lowest_labels(self):
        """Seats come back in ascending label order regardless of input order"""
        seats = [_seat(3, 'A003'), _seat(1, 'A001'), _seat(2, 'A002'), _seat(4, 'A004')]
        chosen = AllocationPolicy.first_fit(seats, 2)
        assert [s.seat_number for s in chosen] == ['A001', 'A002']

    def test_skips_occupied_seats(self):
        """Occupied seats are never chosen"""
        seats = [_seat(1, 'A001', free=False, booking_id=9), _seat(2, 'A002'),
                 _seat(3, 'A003', free=False, booking_id=9), _seat(4, 'A004')]
        chosen = AllocationPolicy.first_fit(seats, 2)
        assert [s.id for s in chosen] == [2, 4]
        assert all(s.state == SeatState.FREE for s in chosen)

    def test_deterministic(self):
        """Same input gives the same answer"""
        seats = [_seat(i, f'A{i:03d}') for i in range(10, 0, -1)]
        first = AllocationPolicy.first_fit(seats, 4)
        second = AllocationPolicy.first_fit(list(reversed(seats)), 4)
        assert [s.id for s in first] == [s.id for s in second] == [1, 2, 3, 4]

    def test_not_enough_free_seats(self):
        """Asking for more than is free raises InsufficientCapacity"""
        seats = [_seat(1, 'A001'), _seat(2, 'A002', free=False, booking_id=3)]
        with pytest.raises(InsufficientCapacity) as excinfo:
            AllocationPolicy.first_fit(seats, 2)
        assert excinfo.value.requested == 2
        assert excinfo.value.free == 1

    @pytest.mark.parametrize('count', [0, -1])
    def test_non_positive_count(self, count):
        """Counts must be positive"""
        with pytest.raises(InvalidArgument):
            AllocationPolicy.first_fit([_seat(1, 'A001')], count)


class TestSeatLabels:
    """Generated seat labels"""

    def test_zero_padded(self):
        """Labels follow the A001 pattern"""
        assert SeatPool.seat_label(1, 150, 'A') == 'A001'
        assert SeatPool.seat_label(150, 150, 'A') == 'A150'

    def test_width_grows_with_capacity(self):
        """Large cabins keep lexical order equal to seat order"""
        labels = [SeatPool.seat_label(i, 1200, 'A') for i in (1, 999, 1000, 1200)]
        assert labels == ['A0001', 'A0999', 'A1000', 'A1200']
        assert labels == sorted(labels)

    def test_prefix(self):
        """Prefix is configurable"""
        assert SeatPool.seat_label(7, 20, 'S') == 'S007'
