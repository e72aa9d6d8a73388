from __future__ import annotations
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence
import logging
import random

from deckrift.errors import CardNotInHand, InvalidIndex
from deckrift.models import Card, JOKER, RANKS, STAT_NAMES, SUITS
from deckrift.runtime_models import DeckState, PlayerProfile, Stats

logger = logging.getLogger(__name__)


# --- deck construction ---

def build_standard_deck(jokers: int = 0) -> list[Card]:
    """52 cards (suit by suit, rank ascending) plus `jokers` extra jokers."""
    if jokers < 0:
        raise ValueError("jokers must be >= 0")
    cards = [Card(rank=r, suit=s) for s in SUITS for r in RANKS]
    cards.extend(Card(rank=JOKER, suit="joker") for _ in range(jokers))
    return cards


def shuffle(cards: list[Card], *, rnd: random.Random) -> list[Card]:
    """In-place Fisher-Yates shuffle; returns the same list for chaining."""
    rnd.shuffle(cards)
    return cards


# --- draw / play / discard ---

@dataclass(frozen=True)
class DrawResult:
    limit: int
    drawn: list[Card]
    reshuffled: bool
    draw_pile_after: int
    discard_pile_after: int
    hand_after: int


def _reshuffle_if_needed(ds: DeckState, *, rnd: random.Random) -> bool:
    """
    If draw pile is empty and discard has cards, reshuffle discard into draw.
    Returns True if reshuffle happened.
    """
    if ds.draw_pile:
        return False
    if not ds.discard_pile:
        return False
    ds.draw_pile.extend(ds.discard_pile)
    ds.discard_pile.clear()
    shuffle(ds.draw_pile, rnd=rnd)
    logger.debug("reshuffled %d discarded cards into the draw pile", len(ds.draw_pile))
    return True


def draw_up_to(ds: DeckState, limit: int, *, rnd: random.Random) -> DrawResult:
    """
    Draw from the top (end) of the draw pile until the hand holds `limit` cards.
    Stops early, without error, once both piles are empty.
    """
    drawn_now: list[Card] = []
    reshuffled_any = False

    while len(ds.hand) < limit:
        reshuffled_any = _reshuffle_if_needed(ds, rnd=rnd) or reshuffled_any
        if not ds.draw_pile:
            break  # nothing left anywhere
        card = ds.draw_pile.pop()
        ds.hand.append(card)
        drawn_now.append(card)

    return DrawResult(
        limit=limit,
        drawn=drawn_now,
        reshuffled=reshuffled_any,
        draw_pile_after=len(ds.draw_pile),
        discard_pile_after=len(ds.discard_pile),
        hand_after=len(ds.hand),
    )


def play_card(hand: list[Card], index: int) -> Card:
    if index < 0 or index >= len(hand):
        raise InvalidIndex(index, len(hand))
    return hand.pop(index)


def discard(hand: list[Card], index: int) -> Card:
    """Same contract as play_card; the caller moves the card to its discard pile."""
    if index < 0 or index >= len(hand):
        raise InvalidIndex(index, len(hand))
    return hand.pop(index)


def find_card_index(hand: Sequence[Card], card: Card) -> int:
    for i, c in enumerate(hand):
        if c == card:
            return i
    raise CardNotInHand(card, len(hand))


# --- encounter setup ---

def challenge_modifier(realms: Mapping[int, Sequence[int]], realm_id: int, level: int) -> int:
    modifiers = realms.get(realm_id)
    if not modifiers:
        return 1
    index = level - 1
    if 0 <= index < len(modifiers):
        return modifiers[index]
    return modifiers[-1]


def generate_enemy_stats(
    primary_stat: Optional[str],
    challenge: int,
    *,
    rnd: random.Random,
) -> Stats:
    """
    Every stat starts at 2, the primary stat gets +1, then each challenge
    point lands on a random stat.
    """
    values = {name: 2 for name in STAT_NAMES}
    if primary_stat in values:
        values[primary_stat] += 1
    for _ in range(max(0, challenge)):
        values[rnd.choice(STAT_NAMES)] += 1
    return Stats(**values)


def generate_boss_stats(challenge: int) -> Stats:
    v = 2 * challenge
    return Stats(power=v, will=v, craft=v, focus=v)


def spawn_player(
    equipment: Sequence[str],
    *,
    health: int = 40,
    stats: Optional[Stats] = None,
) -> PlayerProfile:
    """Fresh run: full health, base stats, a standard 52-card deck."""
    return PlayerProfile(
        stats=stats or Stats(power=4, will=4, craft=4, focus=4),
        health=health,
        max_health=health,
        equipment=list(equipment),
        deck=build_standard_deck(),
    )
