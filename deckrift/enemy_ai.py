from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Optional, Sequence
import logging

from deckrift.models import Card, Equipment, card_color, numeric_value
from deckrift.resolver import multiplier_of

logger = logging.getLogger(__name__)

FACE_CARD_VALUE = 11  # J


@dataclass(frozen=True)
class DiscardDecision:
    should_discard: bool
    card_index: Optional[int] = None


NO_DISCARD = DiscardDecision(False, None)


def find_lowest_card_index(hand: Sequence[Card]) -> Optional[int]:
    """Index of the lowest-value card; the first one on ties."""
    if not hand:
        return None
    lowest = 0
    for i in range(1, len(hand)):
        if numeric_value(hand[i]) < numeric_value(hand[lowest]):
            lowest = i
    return lowest


def find_highest_card_index(hand: Sequence[Card]) -> Optional[int]:
    if not hand:
        return None
    highest = 0
    for i in range(1, len(hand)):
        if numeric_value(hand[i]) > numeric_value(hand[highest]):
            highest = i
    return highest


# --- per-weapon discard rules ---
# Each rule sees the hand and the lowest card; True means "discard the lowest card".

DiscardRule = Callable[[Sequence[Card], Card], bool]


def _sword_rule(hand: Sequence[Card], lowest: Card) -> bool:
    # low cards only hurt a sword hand that has no face card to fall back on
    if numeric_value(lowest) < 5:
        return True
    highest = hand[find_highest_card_index(hand)]
    return numeric_value(highest) < FACE_CARD_VALUE


def _bow_rule(hand: Sequence[Card], lowest: Card) -> bool:
    return numeric_value(lowest) > 6


def _black_non_ace_rule(hand: Sequence[Card], lowest: Card) -> bool:
    return card_color(lowest) == "black" and lowest.rank != "A"


def _below_face_rule(hand: Sequence[Card], lowest: Card) -> bool:
    return numeric_value(lowest) < FACE_CARD_VALUE


def _mid_cards_rule(hand: Sequence[Card], lowest: Card) -> bool:
    return 7 <= numeric_value(lowest) <= 10


DISCARD_RULES: dict[str, DiscardRule] = {
    "sword": _sword_rule,
    "bow": _bow_rule,
    "dagger": _black_non_ace_rule,
    "staff": _black_non_ace_rule,
    "hammer": _below_face_rule,
    "none": _below_face_rule,
    "ace-of-speed": _mid_cards_rule,
}


def should_discard(
    hand: Sequence[Card],
    weapon_id: str,
    craft: int,
    discards_used: int,
) -> DiscardDecision:
    """Decide whether the enemy spends one of its `craft` discards this turn."""
    if discards_used >= craft:
        return NO_DISCARD

    lowest_index = find_lowest_card_index(hand)
    if lowest_index is None:
        return NO_DISCARD

    rule = DISCARD_RULES.get(weapon_id, _below_face_rule)
    if rule(hand, hand[lowest_index]):
        logger.debug("enemy discards %s (weapon=%s)", hand[lowest_index], weapon_id)
        return DiscardDecision(True, lowest_index)
    return NO_DISCARD


def best_card_index(hand: Sequence[Card], weapon: Equipment) -> Optional[int]:
    """
    Index of the card with the strictly highest multiplier for `weapon`.
    None when every card misses.
    """
    best_index: Optional[int] = None
    best_multiplier = 0.0
    for i, card in enumerate(hand):
        m = multiplier_of(weapon, card)
        if m > best_multiplier:
            best_multiplier = m
            best_index = i
    return best_index
