from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Mapping, Optional, Union

from deckrift.errors import InvalidCard

# --- Enums / literals ---

Suit = Literal["hearts", "diamonds", "clubs", "spades", "joker"]
Color = Literal["red", "black"]
EquipmentKind = Literal["weapon", "armor"]
StatName = Literal["power", "will", "craft", "focus"]

JOKER = "Joker"

RANKS: tuple[str, ...] = ("2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K", "A")
SUITS: tuple[str, ...] = ("hearts", "diamonds", "clubs", "spades")
STAT_NAMES: tuple[str, ...] = ("power", "will", "craft", "focus")

CARD_VALUES: dict[str, int] = {
    "2": 2, "3": 3, "4": 4, "5": 5, "6": 6, "7": 7, "8": 8, "9": 9, "10": 10,
    "J": 11, "Q": 12, "K": 13, "A": 14,
    JOKER: 0,
}

# inverted scale for penalty effects: ace is the smallest loss, joker the largest
NEGATIVE_CARD_VALUES: dict[str, int] = {
    "A": 1, "2": 2, "3": 3, "4": 4, "5": 5, "6": 6, "7": 7, "8": 8, "9": 9, "10": 10,
    "J": 11, "Q": 12, "K": 13,
    JOKER: 14,
}

CARD_COLORS: dict[str, Color] = {
    "hearts": "red",
    "diamonds": "red",
    "clubs": "black",
    "spades": "black",
}

INSTANT_KILL = 999.0

EFFECT_MULTIPLIERS: dict[str, float] = {
    "noDamage": 0.0,
    "quarterDamage": 0.25,
    "halfDamage": 0.5,
    "threeQuarterDamage": 0.75,
    "fullDamage": 1.0,
    "doubleDamage": 2.0,
    "healSelf": 1.0,
    "instantKill": INSTANT_KILL,
}


# --- Cards ---

@dataclass(frozen=True)
class Card:
    rank: str
    suit: str

    def validate(self, path: str) -> list[str]:
        errs: list[str] = []
        if self.rank not in CARD_VALUES:
            errs.append(f"{path}: unknown rank '{self.rank}'")
        if self.rank == JOKER:
            if self.suit not in SUITS and self.suit != "joker":
                errs.append(f"{path}: unknown suit '{self.suit}'")
        elif self.suit not in SUITS:
            errs.append(f"{path}: unknown suit '{self.suit}'")
        return errs

    @property
    def code(self) -> str:
        return f"{self.rank}{self.suit[0].upper()}"

    def __str__(self) -> str:
        return f"{self.rank} of {self.suit}"


def parse_card(obj: Any) -> Card:
    """Build a validated card from a `{rank, suit}` mapping or a Card.

    The wire format of the browser client uses `value` for the rank; both keys
    are accepted. Numeric ranks may arrive as ints.
    """
    if isinstance(obj, Card):
        card = obj
    elif isinstance(obj, Mapping):
        rank = obj.get("rank", obj.get("value"))
        suit = obj.get("suit")
        if rank is None or suit is None:
            raise InvalidCard("rank and suit are required", obj)
        card = Card(rank=str(rank), suit=str(suit))
    else:
        raise InvalidCard(f"cannot build a card from {type(obj).__name__}", obj)

    errs = card.validate("card")
    if errs:
        raise InvalidCard("; ".join(errs), obj)
    return card


def numeric_value(card: Card) -> int:
    try:
        return CARD_VALUES[card.rank]
    except KeyError:
        raise InvalidCard(f"unknown rank '{card.rank}'", card) from None


def negative_value(card: Card) -> int:
    try:
        return NEGATIVE_CARD_VALUES[card.rank]
    except KeyError:
        raise InvalidCard(f"unknown rank '{card.rank}'", card) from None


def card_color(card: Card) -> Optional[Color]:
    if card.suit == "joker":
        return None
    try:
        return CARD_COLORS[card.suit]
    except KeyError:
        raise InvalidCard(f"unknown suit '{card.suit}'", card) from None


# --- Conditions ---

@dataclass(frozen=True)
class RangeCondition:
    """Numeric card value within [min, max], both inclusive."""
    min: int
    max: int

    def matches(self, card: Card) -> bool:
        return self.min <= numeric_value(card) <= self.max

    def validate(self, path: str) -> list[str]:
        errs: list[str] = []
        if self.min < 0 or self.max < 0:
            errs.append(f"{path}: range cannot be negative (from={self.min}, to={self.max})")
        if self.min > self.max:
            errs.append(f"{path}: from > to (from={self.min}, to={self.max})")
        return errs


@dataclass(frozen=True)
class SuitCondition:
    suit: str

    def matches(self, card: Card) -> bool:
        return card.suit == self.suit

    def validate(self, path: str) -> list[str]:
        if self.suit not in SUITS:
            return [f"{path}: unknown suit '{self.suit}'"]
        return []


@dataclass(frozen=True)
class ColorCondition:
    color: Color

    def matches(self, card: Card) -> bool:
        return card_color(card) == self.color

    def validate(self, path: str) -> list[str]:
        if self.color not in ("red", "black"):
            return [f"{path}: color must be red/black (got {self.color})"]
        return []


@dataclass(frozen=True)
class RankCondition:
    rank: str

    def matches(self, card: Card) -> bool:
        return card.rank == self.rank

    def validate(self, path: str) -> list[str]:
        if self.rank not in CARD_VALUES:
            return [f"{path}: unknown rank '{self.rank}'"]
        return []


Condition = Union[RangeCondition, SuitCondition, ColorCondition, RankCondition]


# --- Equipment ---

@dataclass(frozen=True)
class HitEffect:
    condition: Condition
    effect: str

    @property
    def multiplier(self) -> float:
        return EFFECT_MULTIPLIERS[self.effect]

    def validate(self, path: str) -> list[str]:
        errs = self.condition.validate(f"{path}.condition")
        if self.effect not in EFFECT_MULTIPLIERS:
            errs.append(f"{path}: unknown effect '{self.effect}'")
        return errs


@dataclass(frozen=True)
class Equipment:
    id: str
    name: str
    kind: EquipmentKind
    hit_effects: tuple[HitEffect, ...]
    description: str = ""
    starting: bool = False
    run_exclusive: bool = False

    @property
    def no_match_multiplier(self) -> float:
        return 0.0 if self.kind == "weapon" else 1.0

    def validate(self, path: str) -> list[str]:
        errs: list[str] = []
        if not self.id:
            errs.append(f"{path}: equipment id is empty")
        if not self.name:
            errs.append(f"{path}: equipment name is empty")
        if self.kind not in ("weapon", "armor"):
            errs.append(f"{path}: kind must be weapon/armor (got {self.kind})")
        for i, he in enumerate(self.hit_effects):
            errs += he.validate(f"{path}.hitEffects[{i}]")
            if self.kind == "armor" and he.effect == "instantKill":
                errs.append(f"{path}.hitEffects[{i}]: instantKill is weapon-only")
        return errs


# rule-less stand-ins for equipment a combatant references but does not own
BARE_WEAPON = Equipment(id="bare", name="Bare hands", kind="weapon", hit_effects=())
BARE_ARMOR = Equipment(id="bare", name="No armor", kind="armor", hit_effects=())


# --- Enemy template ---

@dataclass(frozen=True)
class EnemyTemplate:
    id: str
    name: str
    primary_stat: Optional[StatName]
    weapon: str
    health: int = 30
    boss: bool = False

    def validate(self, path: str, available_weapons: set[str]) -> list[str]:
        errs: list[str] = []
        if not self.id:
            errs.append(f"{path}: enemy id is empty")
        if not self.name:
            errs.append(f"{path}: enemy name is empty")
        if self.primary_stat is not None and self.primary_stat not in STAT_NAMES:
            errs.append(f"{path}.primaryStat must be one of {'/'.join(STAT_NAMES)} (got {self.primary_stat})")
        if self.weapon not in available_weapons:
            errs.append(f"{path}.weapon '{self.weapon}' not found among loaded weapons")
        if self.health <= 0:
            errs.append(f"{path}.health must be > 0 (got {self.health})")
        return errs
