"""Battle phase state machine.

One encounter per session: `start_encounter` creates the BattleState on the
session record, the transitions below mutate it, and it is cleared again once
the battle is over. Every transition checks the phase before touching any
state, so a rejected action leaves the record exactly as it was.

    player-attack -> enemy-turn -> player-defend -> player-attack
                       |  (enemy missed)               ^
                       +-------------------------------+
    player-attack / player-defend -> battle-over (victory / defeat)
"""
from __future__ import annotations
from dataclasses import asdict, dataclass
from typing import Any, Literal, Optional
import logging
import random

from deckrift.combat import attack_damage, mitigate
from deckrift.enemy_ai import best_card_index, should_discard
from deckrift.errors import (
    EncounterAlreadyActive, EquipmentMismatch, InvalidAction, NoActiveEncounter, WrongPhase,
)
from deckrift.loader import Catalog
from deckrift.models import BARE_WEAPON, Card, EnemyTemplate, Equipment, EquipmentKind, parse_card
from deckrift.runtime import (
    build_standard_deck, challenge_modifier, discard, draw_up_to, find_card_index,
    generate_boss_stats, generate_enemy_stats, play_card, shuffle,
)
from deckrift.runtime_models import BattleState, DeckState, EnemyAction, Phase, SessionRecord

logger = logging.getLogger(__name__)

Action = Literal["attack", "defend", "enemy-turn"]
Outcome = Literal["continue", "victory", "defeat"]

NO_ARMOR_IDS = (None, "", "none")


@dataclass(frozen=True)
class BattleOutcome:
    victory: bool


@dataclass(frozen=True)
class TurnResult:
    action: Action
    new_phase: Phase
    outcome: Outcome
    player_health: int
    enemy_health: int

    card_played: Optional[Card] = None
    equipment_used: Optional[str] = None
    raw_damage: int = 0
    damage_dealt: int = 0
    instant_kill: bool = False
    equipment_mismatch: bool = False

    player_hand: tuple[Card, ...] = ()
    enemy_hand_size: int = 0
    enemy_discarded: Optional[Card] = None

    @property
    def battle_over(self) -> Optional[BattleOutcome]:
        if self.outcome == "continue":
            return None
        return BattleOutcome(victory=self.outcome == "victory")


# --- lookups ---

def owned_equipment(
    session: SessionRecord,
    catalog: Catalog,
    equipment_id: Optional[str],
    kind: EquipmentKind,
) -> Equipment:
    if equipment_id is None or equipment_id not in session.player.equipment:
        raise EquipmentMismatch(equipment_id, kind)
    table = catalog.weapons if kind == "weapon" else catalog.armor
    eq = table.get(equipment_id)
    if eq is None:
        raise EquipmentMismatch(equipment_id, kind)
    return eq


def _first_owned(owned: list[str], table: dict[str, Equipment]) -> Optional[str]:
    for equipment_id in owned:
        if equipment_id in table:
            return equipment_id
    return None


def current_state(session: SessionRecord) -> dict[str, Any]:
    battle = session.battle
    return {
        "in_battle": battle is not None,
        "phase": battle.phase if battle else None,
        "turn": battle.turn if battle else None,
        "player_health": session.player.health,
        "enemy_health": battle.enemy_health if battle else None,
    }


def battle_view(session: SessionRecord) -> dict[str, Any]:
    """Snapshot the caller can use to (re)draw the battle."""
    view = current_state(session)
    view["player_max_health"] = session.player.max_health
    battle = session.battle
    if battle is None:
        return view
    view.update(
        enemy_name=battle.enemy_name,
        enemy_weapon=battle.enemy_weapon,
        enemy_boss=battle.enemy_boss,
        enemy_max_health=battle.enemy_max_health,
        enemy_stats=battle.enemy_stats.as_dict(),
        pending_enemy_damage=battle.pending_enemy_damage,
        enemy_discards_used=battle.enemy_discards_used,
        equipped_weapon=battle.equipped_weapon,
        equipped_armor=battle.equipped_armor,
        player_hand=[asdict(c) for c in battle.player.hand],
        player_draw_pile=len(battle.player.draw_pile),
        player_discard_pile=len(battle.player.discard_pile),
        enemy_hand_size=len(battle.enemy.hand),
        last_enemy_action=asdict(battle.last_enemy_action) if battle.last_enemy_action else None,
    )
    return view


def _require_battle(session: SessionRecord) -> BattleState:
    if session.battle is None:
        raise NoActiveEncounter(session.sid)
    return session.battle


def _require_phase(session: SessionRecord, action: Action, expected: Phase) -> BattleState:
    battle = _require_battle(session)
    if battle.phase != expected:
        raise WrongPhase(action, expected, current_state(session))
    return battle


def _result(
    session: SessionRecord,
    battle: BattleState,
    action: Action,
    outcome: Outcome,
    **kwargs: Any,
) -> TurnResult:
    return TurnResult(
        action=action,
        new_phase=battle.phase,
        outcome=outcome,
        player_health=session.player.health,
        enemy_health=battle.enemy_health,
        player_hand=tuple(battle.player.hand),
        enemy_hand_size=len(battle.enemy.hand),
        **kwargs,
    )


def _end_battle(session: SessionRecord, battle: BattleState, victory: bool) -> None:
    battle.phase = "battle-over"
    battle.pending_enemy_damage = 0
    session.battle = None
    logger.info(
        "battle over sid=%s victory=%s player_hp=%d enemy_hp=%d",
        session.sid, victory, session.player.health, battle.enemy_health,
    )


def _take_from_hand(ds: DeckState, card: Any) -> Card:
    c = parse_card(card)
    index = find_card_index(ds.hand, c)
    played = play_card(ds.hand, index)
    ds.discard_pile.append(played)
    return played


# --- encounter start ---

def start_encounter(
    session: SessionRecord,
    enemy: EnemyTemplate,
    level: int,
    *,
    catalog: Catalog,
    rnd: random.Random,
    realm: int = 1,
) -> BattleState:
    if session.battle is not None:
        raise EncounterAlreadyActive(session.sid)

    challenge = challenge_modifier(catalog.realms, realm, level)
    if enemy.boss:
        enemy_stats = generate_boss_stats(challenge)
    else:
        enemy_stats = generate_enemy_stats(enemy.primary_stat, challenge, rnd=rnd)

    player_ds = DeckState(draw_pile=shuffle(list(session.player.deck), rnd=rnd))
    enemy_ds = DeckState(draw_pile=shuffle(build_standard_deck(), rnd=rnd))

    battle = BattleState(
        enemy_name=enemy.name,
        enemy_weapon=enemy.weapon,
        enemy_stats=enemy_stats,
        enemy_health=enemy.health,
        enemy_max_health=enemy.health,
        enemy_boss=enemy.boss,
        player=player_ds,
        enemy=enemy_ds,
        equipped_weapon=_first_owned(session.player.equipment, catalog.weapons),
        equipped_armor=_first_owned(session.player.equipment, catalog.armor),
    )

    draw_up_to(battle.player, session.player.stats.focus, rnd=rnd)
    draw_up_to(battle.enemy, battle.enemy_stats.focus, rnd=rnd)

    session.battle = battle
    logger.info(
        "battle started sid=%s enemy=%s level=%d realm=%d challenge=%d",
        session.sid, enemy.id, level, realm, challenge,
    )
    return battle


# --- transitions ---

def player_attack(
    session: SessionRecord,
    card: Any,
    weapon_id: Optional[str] = None,
    *,
    catalog: Catalog,
    rnd: random.Random,
    instant_kill_bosses: bool = True,
) -> TurnResult:
    battle = _require_phase(session, "attack", "player-attack")
    if weapon_id is None:
        weapon_id = battle.equipped_weapon

    mismatch = False
    try:
        weapon = owned_equipment(session, catalog, weapon_id, "weapon")
    except EquipmentMismatch as exc:
        logger.warning("sid=%s: %s; the attack misses", session.sid, exc)
        weapon = BARE_WEAPON
        mismatch = True

    played = _take_from_hand(battle.player, card)

    hit = attack_damage(
        session.player.stats.power,
        weapon,
        played,
        battle.enemy_max_health,
        allow_instant_kill=instant_kill_bosses or not battle.enemy_boss,
    )
    if hit.instant_kill:
        battle.enemy_health = 0
    else:
        battle.enemy_health = max(0, battle.enemy_health - hit.raw)

    draw_up_to(battle.player, session.player.stats.focus, rnd=rnd)

    if battle.enemy_health <= 0:
        _end_battle(session, battle, victory=True)
        outcome: Outcome = "victory"
    else:
        battle.phase = "enemy-turn"
        outcome = "continue"

    return _result(
        session, battle, "attack", outcome,
        card_played=played,
        equipment_used=weapon.id,
        raw_damage=hit.raw,
        damage_dealt=hit.raw,
        instant_kill=hit.instant_kill,
        equipment_mismatch=mismatch,
    )


def _enemy_missed(session: SessionRecord, battle: BattleState, rnd: random.Random, **kwargs: Any) -> TurnResult:
    battle.phase = "player-attack"
    battle.pending_enemy_damage = 0
    draw_up_to(battle.player, session.player.stats.focus, rnd=rnd)
    return _result(session, battle, "enemy-turn", "continue", **kwargs)


def enemy_turn(
    session: SessionRecord,
    *,
    catalog: Catalog,
    rnd: random.Random,
) -> TurnResult:
    battle = _require_phase(session, "enemy-turn", "enemy-turn")
    weapon = catalog.weapons.get(battle.enemy_weapon, BARE_WEAPON)
    focus = battle.enemy_stats.focus

    # 1) optional strategic discard
    discarded: Optional[Card] = None
    decision = should_discard(
        battle.enemy.hand, battle.enemy_weapon, battle.enemy_stats.craft, battle.enemy_discards_used,
    )
    if decision.should_discard and decision.card_index is not None:
        discarded = discard(battle.enemy.hand, decision.card_index)
        battle.enemy.discard_pile.append(discarded)
        battle.enemy_discards_used += 1
        draw_up_to(battle.enemy, focus, rnd=rnd)

    # 2) pick the attack card
    index = best_card_index(battle.enemy.hand, weapon)
    if index is None:
        logger.debug("sid=%s: enemy has no hitting card for %s", session.sid, weapon.id)
        battle.last_enemy_action = EnemyAction(card=None, weapon=weapon.id, damage=0)
        return _enemy_missed(session, battle, rnd, equipment_used=weapon.id, enemy_discarded=discarded)

    played = play_card(battle.enemy.hand, index)
    battle.enemy.discard_pile.append(played)
    draw_up_to(battle.enemy, focus, rnd=rnd)

    hit = attack_damage(battle.enemy_stats.power, weapon, played, session.player.max_health)
    battle.last_enemy_action = EnemyAction(card=played, weapon=weapon.id, damage=hit.raw)

    common = dict(
        card_played=played,
        equipment_used=weapon.id,
        raw_damage=hit.raw,
        instant_kill=hit.instant_kill,
        enemy_discarded=discarded,
    )
    if hit.raw <= 0:
        return _enemy_missed(session, battle, rnd, **common)

    battle.phase = "player-defend"
    battle.pending_enemy_damage = hit.raw
    return _result(session, battle, "enemy-turn", "continue", **common)


def player_defend(
    session: SessionRecord,
    card: Any,
    armor_id: Optional[str] = None,
    *,
    catalog: Catalog,
    rnd: random.Random,
) -> TurnResult:
    """Play a card against the pending enemy damage.

    With no armor id the equipped armor is used, as attacks use the equipped
    weapon. "none" or "" defends explicitly unarmored.
    """
    battle = _require_phase(session, "defend", "player-defend")
    if armor_id is None:
        armor_id = battle.equipped_armor

    armors: list[Equipment] = []
    mismatch = False
    if armor_id not in NO_ARMOR_IDS:
        try:
            armors.append(owned_equipment(session, catalog, armor_id, "armor"))
        except EquipmentMismatch as exc:
            logger.warning("sid=%s: %s; taking the hit unarmored", session.sid, exc)
            mismatch = True

    played = _take_from_hand(battle.player, card)

    incoming = max(0, int(battle.pending_enemy_damage))
    mit = mitigate(armors, played, incoming)
    session.player.health = max(0, session.player.health - mit.final)

    if session.player.health <= 0:
        _end_battle(session, battle, victory=False)
        outcome: Outcome = "defeat"
    else:
        battle.phase = "player-attack"
        battle.pending_enemy_damage = 0
        draw_up_to(battle.player, session.player.stats.focus, rnd=rnd)
        outcome = "continue"

    return _result(
        session, battle, "defend", outcome,
        card_played=played,
        equipment_used=mit.armor_used,
        raw_damage=incoming,
        damage_dealt=mit.final,
        equipment_mismatch=mismatch,
    )


def advance(
    session: SessionRecord,
    action: str,
    card: Any = None,
    equipment_id: Optional[str] = None,
    *,
    catalog: Catalog,
    rnd: random.Random,
    instant_kill_bosses: bool = True,
) -> TurnResult:
    if action == "attack":
        return player_attack(
            session, card, equipment_id,
            catalog=catalog, rnd=rnd, instant_kill_bosses=instant_kill_bosses,
        )
    if action == "defend":
        return player_defend(session, card, equipment_id, catalog=catalog, rnd=rnd)
    if action == "enemy-turn":
        return enemy_turn(session, catalog=catalog, rnd=rnd)
    raise InvalidAction(action)
