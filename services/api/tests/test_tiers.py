import pytest

from app.services.tiers import (
    TIERS,
    get_next_tier,
    get_tier,
    get_tier_from_wager,
    get_tier_level,
    get_tier_progress,
)


def test_tiers_are_ordered_by_min_wager():
    minimums = [t.min_wager for t in TIERS]
    assert minimums == sorted(minimums)
    assert TIERS[0].key == "copper"
    assert TIERS[-1].key == "diamond"


@pytest.mark.parametrize(
    "amount,key",
    [
        (0, "copper"),
        (999.99, "copper"),
        (1_000, "bronze"),
        (10_000, "silver"),
        (99_999, "silver"),
        (100_000, "gold"),
        (450_000, "platinum"),
        (1_500_000, "pearl"),
        (3_000_000, "sapphire"),
        (7_000_000, "emerald"),
        (20_000_000, "diamond"),
        (1e12, "diamond"),
    ],
)
def test_get_tier_from_wager(amount, key):
    assert get_tier_from_wager(amount).key == key


@pytest.mark.parametrize("amount", [-5, float("nan"), "not a number", None])
def test_invalid_amounts_are_copper(amount):
    assert get_tier_from_wager(amount).key == "copper"


def test_string_amounts_with_commas():
    assert get_tier_from_wager("150,000").key == "gold"


def test_get_next_tier():
    assert get_next_tier("copper").key == "bronze"
    assert get_next_tier("emerald").key == "diamond"
    assert get_next_tier("diamond") is None
    assert get_next_tier("unknown") is None


def test_get_tier_lookup_is_case_insensitive():
    assert get_tier("Gold").name == "Gold"
    assert get_tier("nope") is None


def test_get_tier_level():
    assert get_tier_level(0).name == "Copper 1"
    assert get_tier_level(1_500).name == "Bronze 1"
    assert get_tier_level(25_000).name == "Silver 2"
    assert get_tier_level(260_000).name == "Gold 4"


def test_get_tier_progress():
    progress = get_tier_progress(55_000)
    assert progress.current.key == "silver"
    assert progress.next.key == "gold"
    assert progress.percentage == 50.0


def test_get_tier_progress_bounds():
    assert get_tier_progress(0).percentage == 0.0
    top = get_tier_progress(50_000_000)
    assert top.current.key == "diamond"
    assert top.next is None
    assert top.percentage == 100.0
