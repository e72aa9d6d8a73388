from __future__ import annotations

from typing import Any, Optional


class DeckriftError(Exception):
    """Base for battle core errors."""


class InvalidCard(DeckriftError):
    def __init__(self, detail: str, card: Any = None):
        super().__init__(f"Invalid card: {detail}")
        self.detail = detail
        self.card = card


class InvalidIndex(DeckriftError):
    def __init__(self, index: int, size: int, detail: Optional[str] = None):
        super().__init__(detail or f"Invalid card index {index} (hand size {size})")
        self.index = index
        self.size = size


class CardNotInHand(InvalidIndex):
    def __init__(self, card: Any, size: int):
        super().__init__(-1, size, detail=f"Card {card} not found in hand (hand size {size})")
        self.card = card


class WrongPhase(DeckriftError):
    """Action submitted while the battle is in another phase.

    Carries the authoritative state so the caller can resync its view.
    """

    def __init__(self, action: str, expected: str, current_state: dict[str, Any]):
        super().__init__(
            f"Cannot '{action}' during phase '{current_state.get('phase')}' (expected '{expected}')"
        )
        self.action = action
        self.expected = expected
        self.current_state = dict(current_state)


class EncounterAlreadyActive(DeckriftError):
    def __init__(self, sid: str):
        super().__init__(f"Session '{sid}' is already in battle")
        self.sid = sid


class NoActiveEncounter(DeckriftError):
    def __init__(self, sid: str):
        super().__init__(f"Session '{sid}' is not in battle")
        self.sid = sid


class InvalidAction(DeckriftError):
    def __init__(self, action: str):
        super().__init__(f"Invalid action: {action}")
        self.action = action


class EquipmentMismatch(DeckriftError):
    """Referenced weapon/armor is not owned (or not of the expected kind).

    Raised by loadout lookups only; the battle absorbs it into the bare branch.
    """

    def __init__(self, equipment_id: Optional[str], kind: str):
        super().__init__(f"{kind} '{equipment_id}' is not owned")
        self.equipment_id = equipment_id
        self.kind = kind
