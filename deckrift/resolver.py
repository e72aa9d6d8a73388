"""Ordered condition -> effect matching shared by weapons and armor.

`resolve` is the only place that decides whether a card hits or how much an
armor reduces; damage math and the enemy policy both go through it.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Union

from deckrift.models import INSTANT_KILL, Card, Equipment


@dataclass(frozen=True)
class Matched:
    effect: str
    multiplier: float
    rule_index: int

    @property
    def instant_kill(self) -> bool:
        return self.multiplier == INSTANT_KILL


@dataclass(frozen=True)
class Miss:
    """No weapon rule matched the card."""
    multiplier: float = 0.0
    instant_kill: Literal[False] = False


@dataclass(frozen=True)
class NoMitigation:
    """No armor rule matched the card."""
    multiplier: float = 1.0
    instant_kill: Literal[False] = False


Resolution = Union[Matched, Miss, NoMitigation]

MISS = Miss()
NO_MITIGATION = NoMitigation()


def resolve(equipment: Equipment, card: Card) -> Resolution:
    for i, he in enumerate(equipment.hit_effects):
        if he.condition.matches(card):
            return Matched(effect=he.effect, multiplier=he.multiplier, rule_index=i)
    return MISS if equipment.kind == "weapon" else NO_MITIGATION


def multiplier_of(equipment: Equipment, card: Card) -> float:
    return resolve(equipment, card).multiplier
