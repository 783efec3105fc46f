"""
Unit Tests for the Structure record

Test Categories:
    1. Construction invariants
    2. Derived properties (filters, serial number, closing date)
    3. Leg edits
    4. Close / reopen lifecycle
    5. Serialization
"""

from datetime import date, datetime

import pytest

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from optionbook.core.leg import Leg, OptionSide
from optionbook.core.structure import (
    Multiplier,
    Structure,
    StructureStateError,
    StructureStatus,
    StructureValidationError,
)


# =============================================================================
# Fixtures
# =============================================================================

def make_leg(leg_id, side=OptionSide.CALL, strike=24500.0, expiry=date(2024, 3, 15),
             quantity=-1, **kwargs):
    return Leg(
        id=leg_id,
        side=side,
        strike=strike,
        expiry=expiry,
        quantity=quantity,
        trade_price=kwargs.pop('trade_price', 100.0),
        implied_volatility=kwargs.pop('implied_volatility', 0.15),
        **kwargs,
    )


@pytest.fixture
def strangle():
    return Structure(
        id='s-1',
        tag='Strangle 12',
        legs=(
            make_leg('c', OptionSide.CALL, strike=25000.0),
            make_leg('p', OptionSide.PUT, strike=24000.0, expiry=date(2024, 2, 16)),
        ),
        multiplier=Multiplier.INDEX,
    )


@pytest.fixture
def fully_closed(strangle):
    return strangle.with_legs([
        strangle.get_leg('c').close(40.0, date(2024, 2, 10)),
        strangle.get_leg('p').close(60.0, date(2024, 2, 14)),
    ])


# =============================================================================
# Construction
# =============================================================================

class TestStructureConstruction:

    def test_defaults(self):
        structure = Structure(id='s', tag='Empty')

        assert structure.legs == ()
        assert structure.multiplier == Multiplier.INDEX
        assert structure.status == StructureStatus.ACTIVE
        assert structure.realized_pnl is None
        assert structure.is_active

    def test_legs_list_converted_to_tuple(self):
        structure = Structure(id='s', tag='t', legs=[make_leg('a')])
        assert isinstance(structure.legs, tuple)

    def test_multiplier_coerced(self):
        structure = Structure(id='s', tag='t', multiplier=25)
        assert structure.multiplier is Multiplier.FUTURE

    @pytest.mark.parametrize("kwargs", [
        {'id': ''},
        {'multiplier': 10},
        {'legs': ('not a leg',)},
        {'status': 'pending'},
        {'status': StructureStatus.CLOSED},
        {'status': StructureStatus.CLOSED, 'realized_pnl': float('nan')},
        {'realized_pnl': 100.0},
    ])
    def test_invalid_structures(self, kwargs):
        fields = {'id': 's', 'tag': 't'}
        fields.update(kwargs)

        with pytest.raises(StructureValidationError):
            Structure(**fields)

    def test_duplicate_leg_ids(self):
        with pytest.raises(StructureValidationError, match="duplicate"):
            Structure(id='s', tag='t', legs=(make_leg('a'), make_leg('a', strike=25000.0)))


# =============================================================================
# Derived Properties
# =============================================================================

class TestStructureProperties:

    @pytest.mark.parametrize("tag,expected", [
        ('Trade 12', 12),
        ('Strangle 3', 3),
        ('IC-007', 7),
        ('Strangle', None),
        ('12 Strangle', None),
        ('', None),
    ])
    def test_serial_number(self, tag, expected):
        assert Structure(id='s', tag=tag).serial_number == expected

    def test_leg_filters(self, strangle):
        disabled = make_leg('d', strike=26000.0).with_changes(enabled=False)
        closed = make_leg('x', strike=23000.0).close(5.0, date(2024, 2, 1))
        structure = strangle.add_leg(disabled).add_leg(closed)

        assert [leg.id for leg in structure.enabled_legs] == ['c', 'p', 'x']
        assert [leg.id for leg in structure.open_legs] == ['c', 'p']
        assert [leg.id for leg in structure.closed_legs] == ['x']
        assert structure.strikes == [25000.0, 24000.0, 23000.0]

    def test_earliest_expiry_ignores_disabled(self, strangle):
        assert strangle.earliest_expiry == date(2024, 2, 16)

        early_disabled = make_leg('e', expiry=date(2024, 1, 19)).with_changes(enabled=False)
        assert strangle.add_leg(early_disabled).earliest_expiry == date(2024, 2, 16)

    def test_earliest_expiry_without_legs(self):
        assert Structure(id='s', tag='t').earliest_expiry is None

    def test_effective_closing_date_prefers_latest_leg_date(self, fully_closed):
        assert fully_closed.effective_closing_date == date(2024, 2, 14)

    def test_effective_closing_date_falls_back_to_structure(self):
        structure = Structure(
            id='s', tag='t',
            status=StructureStatus.CLOSED,
            realized_pnl=10.0,
            closing_date=date(2024, 5, 1),
        )
        assert structure.effective_closing_date == date(2024, 5, 1)

    def test_get_leg(self, strangle):
        assert strangle.get_leg('p').side == OptionSide.PUT
        with pytest.raises(KeyError):
            strangle.get_leg('missing')


# =============================================================================
# Edits
# =============================================================================

class TestStructureEdits:

    def test_edits_return_new_structures(self, strangle):
        renamed = strangle.with_tag('Strangle 13')

        assert renamed.tag == 'Strangle 13'
        assert strangle.tag == 'Strangle 12'
        assert renamed.legs == strangle.legs

    def test_add_leg_preserves_order(self, strangle):
        structure = strangle.add_leg(make_leg('n', strike=26000.0))
        assert [leg.id for leg in structure.legs] == ['c', 'p', 'n']

    def test_add_leg_duplicate_id(self, strangle):
        with pytest.raises(StructureValidationError):
            strangle.add_leg(make_leg('c'))

    def test_replace_leg(self, strangle):
        updated = strangle.get_leg('c').with_changes(quantity=-3)
        structure = strangle.replace_leg(updated)

        assert structure.get_leg('c').quantity == -3
        assert [leg.id for leg in structure.legs] == ['c', 'p']
        assert strangle.get_leg('c').quantity == -1

    def test_replace_unknown_leg(self, strangle):
        with pytest.raises(KeyError):
            strangle.replace_leg(make_leg('zzz'))

    def test_remove_leg(self, strangle):
        structure = strangle.remove_leg('c')
        assert [leg.id for leg in structure.legs] == ['p']
        with pytest.raises(KeyError):
            strangle.remove_leg('zzz')

    def test_with_multiplier(self, strangle):
        assert strangle.with_multiplier(1).multiplier == Multiplier.CFD
        with pytest.raises(ValueError):
            strangle.with_multiplier(10)

    def test_closed_structure_rejects_edits(self, fully_closed):
        closed = fully_closed.close(-250.0)

        with pytest.raises(StructureStateError):
            closed.add_leg(make_leg('n'))
        with pytest.raises(StructureStateError):
            closed.remove_leg('c')
        with pytest.raises(StructureStateError):
            closed.with_tag('Renamed')
        with pytest.raises(StructureStateError):
            closed.with_multiplier(25)


# =============================================================================
# Lifecycle
# =============================================================================

class TestStructureLifecycle:

    def test_close_requires_every_leg_closed(self, strangle):
        partially = strangle.replace_leg(strangle.get_leg('c').close(40.0, date(2024, 2, 10)))

        with pytest.raises(StructureStateError, match=r"closing price: p$"):
            partially.close(100.0)

    def test_close_lists_all_open_legs(self, strangle):
        with pytest.raises(StructureStateError) as exc_info:
            strangle.close(0.0)
        assert 'c, p' in str(exc_info.value)

    def test_disabled_open_leg_blocks_close(self, fully_closed):
        disabled = make_leg('d').with_changes(enabled=False)
        with pytest.raises(StructureStateError):
            fully_closed.add_leg(disabled).close(0.0)

    def test_close_freezes_pnl(self, fully_closed):
        closed = fully_closed.close(-120.5)

        assert closed.is_closed
        assert closed.realized_pnl == -120.5
        assert closed.closing_date == date(2024, 2, 14)
        assert fully_closed.is_active

    def test_close_with_explicit_date(self, fully_closed):
        closed = fully_closed.close(10.0, date(2024, 2, 20))
        assert closed.closing_date == date(2024, 2, 20)

    def test_double_close_raises(self, fully_closed):
        with pytest.raises(StructureStateError):
            fully_closed.close(10.0).close(10.0)

    def test_reopen(self, fully_closed):
        reopened = fully_closed.close(10.0).reopen()

        assert reopened.is_active
        assert reopened.realized_pnl is None
        assert reopened.closing_date is None
        assert reopened.legs == fully_closed.legs

    def test_reopen_active_raises(self, strangle):
        with pytest.raises(StructureStateError):
            strangle.reopen()


# =============================================================================
# Serialization
# =============================================================================

class TestStructureSerialization:

    def test_round_trip_active(self, strangle):
        structure = Structure(
            id=strangle.id,
            tag=strangle.tag,
            legs=strangle.legs,
            created_at=datetime(2024, 2, 1, 9, 30),
        )
        assert Structure.from_dict(structure.to_dict()) == structure

    def test_round_trip_closed(self, fully_closed):
        closed = fully_closed.with_multiplier(25).close(-75.0)
        restored = Structure.from_dict(closed.to_dict())

        assert restored == closed
        assert restored.multiplier is Multiplier.FUTURE
        assert restored.status is StructureStatus.CLOSED

    @pytest.mark.parametrize('status', ['Closed', 'closed', 'CLOSED'])
    def test_from_dict_status_any_case(self, fully_closed, status):
        data = dict(fully_closed.close(-75.0).to_dict(), status=status)

        assert Structure.from_dict(data).status is StructureStatus.CLOSED

    def test_from_dict_unknown_status(self, strangle):
        with pytest.raises(ValueError):
            Structure.from_dict(dict(strangle.to_dict(), status='Pending'))

    def test_to_dict_shape(self, strangle):
        data = strangle.to_dict()

        assert data['status'] == 'Active'
        assert data['multiplier'] == 5
        assert len(data['legs']) == 2
        assert data['legs'][0]['id'] == 'c'
