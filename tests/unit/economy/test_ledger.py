"""Tests for the resource ledger."""

import pytest

from economy.ledger import DEFAULT_CAPACITY, ResourceLedger


class TestAdd:
    def test_qi_is_clamped_to_capacity(self):
        ledger = ResourceLedger(capacity=100)
        assert ledger.add("qi", 250) == 100
        assert ledger.qi == 100

    def test_secondary_resources_are_uncapped(self):
        ledger = ResourceLedger(capacity=100)
        ledger.add("herbs", 1e9)
        assert ledger.herbs == 1e9

    def test_negative_amount_never_goes_below_zero(self):
        ledger = ResourceLedger(herbs=5)
        ledger.add("herbs", -10)
        assert ledger.herbs == 0

    def test_unknown_resource_raises(self):
        with pytest.raises(KeyError):
            ResourceLedger().add("gold", 1)


class TestSpend:
    def test_spend_is_all_or_nothing(self):
        ledger = ResourceLedger(qi=50, herbs=10, capacity=100)
        assert not ledger.spend({"qi": 20, "herbs": 11})
        assert ledger.qi == 50
        assert ledger.herbs == 10

    def test_spend_deducts_every_cost(self):
        ledger = ResourceLedger(qi=50, herbs=10, jade=2, capacity=100)
        assert ledger.spend({"qi": 20, "herbs": 10, "jade": 1})
        assert ledger.as_dict() == {
            "qi": 30,
            "herbs": 0,
            "spirit_stones": 0,
            "beasts": 0,
            "jade": 1,
            "capacity": 100,
        }


def test_lowering_capacity_reclamps_qi():
    ledger = ResourceLedger(qi=900, capacity=1000)
    ledger.set_capacity(500)
    assert ledger.qi == 500


def test_from_dict_tolerates_missing_and_bad_values():
    ledger = ResourceLedger.from_dict({"qi": "lots", "herbs": 12, "jade": None})
    assert ledger.qi == 0
    assert ledger.herbs == 12
    assert ledger.jade == 0
    assert ledger.capacity == DEFAULT_CAPACITY


def test_from_dict_clamps_qi_over_saved_capacity():
    ledger = ResourceLedger.from_dict({"qi": 5000, "capacity": 1000})
    assert ledger.qi == 1000
