from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Sequence
import math

from deckrift.models import Card, Equipment
from deckrift.resolver import Matched, Resolution, resolve


@dataclass(frozen=True)
class AttackResult:
    raw: int
    instant_kill: bool
    resolution: Resolution

    @property
    def hit(self) -> bool:
        return self.raw > 0 or self.instant_kill


@dataclass(frozen=True)
class MitigationResult:
    incoming: int
    final: int
    reduced: int
    armor_used: Optional[str]
    multiplier: float


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def attack_damage(
    power: int,
    weapon: Equipment,
    card: Card,
    target_max_health: int,
    *,
    allow_instant_kill: bool = True,
) -> AttackResult:
    """
    Damage dealt by one card with one weapon.

    Rules:
      - instant-kill sentinel: raw = target_max_health (caller zeroes the target)
      - sentinel with allow_instant_kill=False: counted as full damage
      - otherwise raw = floor(power * multiplier); a miss deals 0
    """
    res = resolve(weapon, card)

    if isinstance(res, Matched) and res.instant_kill:
        if allow_instant_kill:
            return AttackResult(raw=max(0, target_max_health), instant_kill=True, resolution=res)
        return AttackResult(raw=max(0, int(math.floor(power * 1.0))), instant_kill=False, resolution=res)

    raw = int(math.floor(power * res.multiplier))
    return AttackResult(raw=max(0, raw), instant_kill=False, resolution=res)


def mitigate(armors: Sequence[Equipment], card: Card, incoming: int) -> MitigationResult:
    """
    Reduce incoming damage with the best of the given armors for this card.

    Armors never stack: the lowest multiplier wins, first armor on ties.
    When no rule of any armor matches, the first armor is still reported as
    used. No armor means the damage goes through unmitigated.
    """
    if incoming < 0:
        raise ValueError("incoming damage must be >= 0")

    best: Optional[Equipment] = None
    best_multiplier = 1.0
    for armor in armors:
        m = resolve(armor, card).multiplier
        if m < best_multiplier:
            best_multiplier = m
            best = armor
    if best is None and armors:
        best = armors[0]

    final = min(incoming, max(0, _round_half_up(incoming * best_multiplier)))
    return MitigationResult(
        incoming=incoming,
        final=final,
        reduced=incoming - final,
        armor_used=best.id if best else None,
        multiplier=best_multiplier,
    )
