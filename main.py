import random
from pathlib import Path
from typing import Optional

from deckrift.battle import TurnResult, advance, start_encounter
from deckrift.config import configure_logging
from deckrift.loader import Catalog, load_catalog
from deckrift.resolver import multiplier_of
from deckrift.runtime import spawn_player
from deckrift.runtime_models import SessionRecord

ROOT = Path(__file__).parent


def pick_card(session: SessionRecord, catalog: Catalog, equipment_id: Optional[str], lowest: bool):
    """Greedy pick: best multiplier for attacks, lowest multiplier for defense."""
    hand = session.battle.player.hand
    eq = catalog.equipment(equipment_id)
    if eq is None:
        return hand[0]
    key = lambda c: multiplier_of(eq, c)
    return min(hand, key=key) if lowest else max(hand, key=key)


def play_battle(enemy_id: str, *, seed: int, catalog: Catalog, max_turns: int = 500) -> list[TurnResult]:
    rnd = random.Random(seed)
    session = SessionRecord(sid=f"demo-{seed}", player=spawn_player(catalog.starting_equipment()))
    battle = start_encounter(session, catalog.enemies[enemy_id], level=1, catalog=catalog, rnd=rnd)
    weapon, armor = battle.equipped_weapon, battle.equipped_armor

    log: list[TurnResult] = []
    for _ in range(max_turns):
        if session.battle is None:
            break
        phase = session.battle.phase
        if phase == "player-attack":
            card = pick_card(session, catalog, weapon, lowest=False)
            log.append(advance(session, "attack", card, weapon, catalog=catalog, rnd=rnd))
        elif phase == "enemy-turn":
            log.append(advance(session, "enemy-turn", catalog=catalog, rnd=rnd))
        else:
            card = pick_card(session, catalog, armor, lowest=True)
            log.append(advance(session, "defend", card, armor, catalog=catalog, rnd=rnd))
    return log


if __name__ == "__main__":
    configure_logging("INFO")
    catalog = load_catalog(ROOT / "data")

    for i in range(10):
        turns = play_battle("brute", seed=i, catalog=catalog)
        last = turns[-1]
        print(i, "turns=", len(turns), "outcome=", last.outcome, "hp=", last.player_health)
