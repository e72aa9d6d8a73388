from __future__ import annotations
from dataclasses import dataclass, field
from typing import Literal, Optional

from deckrift.models import Card

Phase = Literal["player-attack", "enemy-turn", "player-defend", "battle-over"]
Turn = Literal["player", "enemy"]


@dataclass
class Stats:
    power: int = 2
    will: int = 2
    craft: int = 2
    focus: int = 2

    def as_dict(self) -> dict[str, int]:
        return {"power": self.power, "will": self.will, "craft": self.craft, "focus": self.focus}


@dataclass
class DeckState:
    draw_pile: list[Card] = field(default_factory=list)     # top of the pile is the end of the list
    discard_pile: list[Card] = field(default_factory=list)
    hand: list[Card] = field(default_factory=list)

    def total(self) -> int:
        return len(self.draw_pile) + len(self.discard_pile) + len(self.hand)


@dataclass
class EnemyAction:
    card: Optional[Card]
    weapon: str
    damage: int


@dataclass
class BattleState:
    enemy_name: str
    enemy_weapon: str
    enemy_stats: Stats
    enemy_health: int
    enemy_max_health: int

    phase: Phase = "player-attack"
    enemy_boss: bool = False

    player: DeckState = field(default_factory=DeckState)
    enemy: DeckState = field(default_factory=DeckState)

    pending_enemy_damage: int = 0
    enemy_discards_used: int = 0

    equipped_weapon: Optional[str] = None
    equipped_armor: Optional[str] = None

    last_enemy_action: Optional[EnemyAction] = None

    @property
    def turn(self) -> Turn:
        return "enemy" if self.phase == "enemy-turn" else "player"


@dataclass
class PlayerProfile:
    stats: Stats
    health: int
    max_health: int
    equipment: list[str] = field(default_factory=list)  # owned equipment ids
    deck: list[Card] = field(default_factory=list)       # run deck, copied into each encounter


@dataclass
class SessionRecord:
    sid: str
    player: PlayerProfile
    battle: Optional[BattleState] = None

    @property
    def in_battle(self) -> bool:
        return self.battle is not None
