"""Small builders shared by the test modules."""
from deckrift.models import Card, Equipment, HitEffect, RangeCondition


def card(rank, suit="spades"):
    return Card(rank=str(rank), suit=suit)


def weapon(*rules, id="test-weapon"):
    """rules: (from, to, effect) tuples, evaluated in order."""
    return Equipment(
        id=id,
        name=id,
        kind="weapon",
        hit_effects=tuple(HitEffect(RangeCondition(lo, hi), effect) for lo, hi, effect in rules),
    )


def armor(*rules, id="test-armor"):
    return Equipment(
        id=id,
        name=id,
        kind="armor",
        hit_effects=tuple(HitEffect(RangeCondition(lo, hi), effect) for lo, hi, effect in rules),
    )
