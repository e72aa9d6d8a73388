import copy
import random

import pytest

from deckrift.battle import (
    advance, battle_view, enemy_turn, player_attack, player_defend, start_encounter,
)
from deckrift.errors import (
    CardNotInHand, EncounterAlreadyActive, InvalidAction, InvalidCard, NoActiveEncounter, WrongPhase,
)
from deckrift.runtime_models import BattleState, DeckState, Stats

from helpers import card


def arrange(
    session,
    *,
    player_hand,
    player_draw=(),
    enemy_hand=(),
    enemy_draw=(),
    enemy_weapon="sword",
    enemy_stats=None,
    phase="player-attack",
    enemy_health=30,
    boss=False,
    pending=0,
):
    session.battle = BattleState(
        enemy_name="Dummy",
        enemy_weapon=enemy_weapon,
        enemy_stats=enemy_stats or Stats(power=4, will=2, craft=0, focus=max(1, len(enemy_hand))),
        enemy_health=enemy_health,
        enemy_max_health=30,
        enemy_boss=boss,
        phase=phase,
        player=DeckState(draw_pile=list(player_draw), hand=list(player_hand)),
        enemy=DeckState(draw_pile=list(enemy_draw), hand=list(enemy_hand)),
        pending_enemy_damage=pending,
        equipped_weapon="sword",
        equipped_armor="light",
    )
    return session.battle


# ---------- start ----------

def test_start_encounter_deals_opening_hands(session, catalog, rnd):
    battle = start_encounter(session, catalog.enemies["brute"], level=1, catalog=catalog, rnd=rnd)
    assert session.battle is battle
    assert battle.phase == "player-attack"
    assert battle.turn == "player"
    assert len(battle.player.hand) == session.player.stats.focus
    assert len(battle.enemy.hand) == battle.enemy_stats.focus
    assert battle.player.total() == 52
    assert battle.enemy.total() == 52
    assert battle.equipped_weapon == "sword"
    assert battle.equipped_armor == "light"
    assert battle.enemy_health == battle.enemy_max_health == 30
    assert battle.pending_enemy_damage == 0


def test_start_encounter_leaves_run_deck_untouched(session, catalog, rnd):
    before = list(session.player.deck)
    start_encounter(session, catalog.enemies["brute"], level=2, catalog=catalog, rnd=rnd)
    assert session.player.deck == before


def test_enemy_stats_follow_primary_stat_and_challenge(session, catalog, rnd):
    # realm 1 level 3 -> challenge 3: base 8 + primary 1 + 3 points
    battle = start_encounter(session, catalog.enemies["brute"], level=3, catalog=catalog, rnd=rnd)
    stats = battle.enemy_stats
    assert sum(stats.as_dict().values()) == 12
    assert stats.power >= 3


def test_boss_stats(session, catalog, rnd):
    battle = start_encounter(session, catalog.enemies["ace-of-speed"], level=2, realm=2, catalog=catalog, rnd=rnd)
    assert battle.enemy_boss
    assert battle.enemy_stats.as_dict() == {"power": 6, "will": 6, "craft": 6, "focus": 6}


def test_second_encounter_is_rejected(session, catalog, rnd):
    start_encounter(session, catalog.enemies["brute"], level=1, catalog=catalog, rnd=rnd)
    with pytest.raises(EncounterAlreadyActive):
        start_encounter(session, catalog.enemies["seer"], level=1, catalog=catalog, rnd=rnd)


# ---------- player attack ----------

def test_player_attack_hit(session, catalog, rnd):
    battle = arrange(session, player_hand=[card("K"), card(2), card(3), card(4)], player_draw=[card(9)])
    res = player_attack(session, card("K"), "sword", catalog=catalog, rnd=rnd)
    assert res.raw_damage == res.damage_dealt == 4
    assert res.outcome == "continue"
    assert res.new_phase == "enemy-turn"
    assert battle.enemy_health == 26
    assert battle.phase == "enemy-turn"
    assert battle.turn == "enemy"
    assert battle.player.discard_pile == [card("K")]
    assert battle.player.hand == [card(2), card(3), card(4), card(9)]
    assert res.battle_over is None


def test_player_miss_still_consumes_turn(session, catalog, rnd):
    battle = arrange(session, player_hand=[card(3), card(5)], player_draw=[card(9), card(8), card(7)])
    res = player_attack(session, card(3), "sword", catalog=catalog, rnd=rnd)
    assert res.damage_dealt == 0
    assert battle.enemy_health == 30
    assert battle.phase == "enemy-turn"
    assert len(battle.player.hand) == 4


def test_player_attack_accepts_plain_card_dict(session, catalog, rnd):
    arrange(session, player_hand=[card("A", "hearts")])
    res = player_attack(session, {"value": "A", "suit": "hearts"}, "sword", catalog=catalog, rnd=rnd)
    assert res.card_played == card("A", "hearts")


def test_player_attack_defaults_to_equipped_weapon(session, catalog, rnd):
    arrange(session, player_hand=[card("Q")])
    res = player_attack(session, card("Q"), catalog=catalog, rnd=rnd)
    assert res.equipment_used == "sword"
    assert res.damage_dealt == 4


def test_unowned_weapon_is_a_miss_not_an_error(session, catalog, rnd):
    battle = arrange(session, player_hand=[card("K"), card(2)])
    res = player_attack(session, card("K"), "hammer", catalog=catalog, rnd=rnd)
    assert res.equipment_mismatch
    assert res.damage_dealt == 0
    assert battle.phase == "enemy-turn"
    assert battle.player.discard_pile == [card("K")]


def test_victory_clears_battle(session, catalog, rnd):
    battle = arrange(session, player_hand=[card("K")], enemy_health=3)
    res = player_attack(session, card("K"), "sword", catalog=catalog, rnd=rnd)
    assert res.outcome == "victory"
    assert res.new_phase == "battle-over"
    assert res.battle_over.victory is True
    assert res.enemy_health == 0
    assert session.battle is None
    assert battle.phase == "battle-over"


def test_instant_kill(session, catalog, rnd):
    session.player.equipment.append("needle")
    arrange(session, player_hand=[card("A", "clubs")])
    res = player_attack(session, card("A", "clubs"), "needle", catalog=catalog, rnd=rnd)
    assert res.instant_kill
    assert res.damage_dealt == 30
    assert res.outcome == "victory"


def test_instant_kill_can_spare_bosses(session, catalog, rnd):
    session.player.equipment.append("needle")
    battle = arrange(session, player_hand=[card("A", "clubs")], boss=True)
    res = player_attack(
        session, card("A", "clubs"), "needle", catalog=catalog, rnd=rnd, instant_kill_bosses=False,
    )
    assert not res.instant_kill
    assert res.damage_dealt == 4
    assert battle.enemy_health == 26
    assert res.outcome == "continue"


def test_card_not_in_hand_changes_nothing(session, catalog, rnd):
    arrange(session, player_hand=[card(2)], player_draw=[card(3)])
    before = copy.deepcopy(session)
    with pytest.raises(CardNotInHand):
        player_attack(session, card("K"), "sword", catalog=catalog, rnd=rnd)
    assert session == before


def test_garbage_card_is_invalid(session, catalog, rnd):
    arrange(session, player_hand=[card(2)])
    with pytest.raises(InvalidCard):
        player_attack(session, {"rank": "1", "suit": "spades"}, "sword", catalog=catalog, rnd=rnd)


# ---------- phase legality ----------

def test_defend_during_attack_phase_is_wrong_phase(session, catalog, rnd):
    arrange(session, player_hand=[card(2), card(3)], player_draw=[card(4)])
    before = copy.deepcopy(session)
    with pytest.raises(WrongPhase) as info:
        player_defend(session, card(2), "light", catalog=catalog, rnd=rnd)
    assert session == before
    assert info.value.current_state == {
        "in_battle": True,
        "phase": "player-attack",
        "turn": "player",
        "player_health": 40,
        "enemy_health": 30,
    }


def test_attack_during_enemy_turn_is_wrong_phase(session, catalog, rnd):
    arrange(session, player_hand=[card(2)], enemy_hand=[card(5)], phase="enemy-turn")
    before = copy.deepcopy(session)
    with pytest.raises(WrongPhase):
        player_attack(session, card(2), "sword", catalog=catalog, rnd=rnd)
    assert session == before


def test_enemy_turn_during_player_phase_is_wrong_phase(session, catalog, rnd):
    arrange(session, player_hand=[card(2)], enemy_hand=[card(5)])
    with pytest.raises(WrongPhase) as info:
        enemy_turn(session, catalog=catalog, rnd=rnd)
    assert info.value.current_state["turn"] == "player"


def test_no_active_encounter(session, catalog, rnd):
    with pytest.raises(NoActiveEncounter):
        player_attack(session, card(2), "sword", catalog=catalog, rnd=rnd)


def test_unknown_action(session, catalog, rnd):
    arrange(session, player_hand=[card(2)])
    with pytest.raises(InvalidAction):
        advance(session, "flee", catalog=catalog, rnd=rnd)


# ---------- enemy turn ----------

def test_enemy_hit_moves_to_defend(session, catalog, rnd):
    battle = arrange(
        session,
        player_hand=[card(2)],
        enemy_hand=[card(2), card("K"), card(3)],
        enemy_draw=[card(5)],
        phase="enemy-turn",
    )
    res = enemy_turn(session, catalog=catalog, rnd=rnd)
    assert res.card_played == card("K")
    assert res.raw_damage == 4
    assert battle.phase == "player-defend"
    assert battle.pending_enemy_damage == 4
    assert battle.enemy.hand == [card(2), card(3), card(5)]
    assert battle.enemy.discard_pile == [card("K")]
    assert battle.last_enemy_action.damage == 4


def test_enemy_without_hitting_card_misses(session, catalog, rnd):
    battle = arrange(
        session,
        player_hand=[card(2)],
        player_draw=[card(6), card(7), card(8)],
        enemy_hand=[card(2), card(3), card(4)],
        phase="enemy-turn",
    )
    res = enemy_turn(session, catalog=catalog, rnd=rnd)
    assert res.card_played is None
    assert res.raw_damage == 0
    assert battle.phase == "player-attack"
    assert battle.pending_enemy_damage == 0
    assert battle.enemy.hand == [card(2), card(3), card(4)]
    assert len(battle.player.hand) == 4
    assert battle.last_enemy_action.card is None


def test_enemy_weak_hit_rounds_to_zero_and_misses(session, catalog, rnd):
    battle = arrange(
        session,
        player_hand=[card(2)],
        enemy_hand=[card(7)],
        enemy_stats=Stats(power=1, will=2, craft=0, focus=1),
        phase="enemy-turn",
    )
    res = enemy_turn(session, catalog=catalog, rnd=rnd)
    assert res.card_played == card(7)
    assert res.raw_damage == 0
    assert battle.phase == "player-attack"


def test_enemy_discards_and_redraws(session, catalog, rnd):
    battle = arrange(
        session,
        player_hand=[card(2)],
        enemy_hand=[card(2), card("K"), card(9)],
        enemy_draw=[card("Q")],
        enemy_stats=Stats(power=4, will=2, craft=1, focus=3),
        phase="enemy-turn",
    )
    res = enemy_turn(session, catalog=catalog, rnd=rnd)
    assert res.enemy_discarded == card(2)
    assert battle.enemy_discards_used == 1
    assert res.card_played == card("K")
    assert len(battle.enemy.hand) == 3
    assert battle.enemy.total() == 4


def test_enemy_discard_budget_is_per_encounter(session, catalog, rnd):
    battle = arrange(
        session,
        player_hand=[card(2)],
        enemy_hand=[card(2), card("K")],
        enemy_draw=[card(3)],
        enemy_stats=Stats(power=4, will=2, craft=1, focus=2),
        phase="enemy-turn",
    )
    battle.enemy_discards_used = 1
    res = enemy_turn(session, catalog=catalog, rnd=rnd)
    assert res.enemy_discarded is None
    assert battle.enemy_discards_used == 1


# ---------- player defend ----------

def test_defend_with_armor(session, catalog, rnd):
    battle = arrange(session, player_hand=[card("K"), card(2)], player_draw=[card(5)], phase="player-defend", pending=8)
    res = player_defend(session, card("K"), "light", catalog=catalog, rnd=rnd)
    assert res.raw_damage == 8
    assert res.damage_dealt == 0
    assert res.equipment_used == "light"
    assert session.player.health == 40
    assert battle.phase == "player-attack"
    assert battle.pending_enemy_damage == 0
    assert battle.player.hand == [card(2), card(5)]


def test_defend_without_armor_id_uses_equipped_armor(session, catalog, rnd):
    arrange(session, player_hand=[card("Q"), card(2)], phase="player-defend", pending=8)
    res = player_defend(session, card("Q"), catalog=catalog, rnd=rnd)
    assert res.equipment_used == "light"
    assert not res.equipment_mismatch
    assert res.damage_dealt == 0
    assert session.player.health == 40


def test_defend_with_unmatched_armor_still_reports_it(session, catalog, rnd):
    arrange(session, player_hand=[card(4)], phase="player-defend", pending=5)
    res = player_defend(session, card(4), "light", catalog=catalog, rnd=rnd)
    assert res.equipment_used == "light"
    assert res.damage_dealt == 5


def test_defend_without_armor_takes_full_damage(session, catalog, rnd):
    battle = arrange(session, player_hand=[card("K")], phase="player-defend", pending=8)
    res = player_defend(session, card("K"), "none", catalog=catalog, rnd=rnd)
    assert res.damage_dealt == 8
    assert not res.equipment_mismatch
    assert session.player.health == 32
    assert battle.pending_enemy_damage == 0


def test_defend_with_unowned_armor_is_unarmored(session, catalog, rnd):
    arrange(session, player_hand=[card("A")], phase="player-defend", pending=6)
    res = player_defend(session, card("A"), "heavy", catalog=catalog, rnd=rnd)
    assert res.equipment_mismatch
    assert res.damage_dealt == 6


def test_defend_with_weapon_id_is_unarmored(session, catalog, rnd):
    arrange(session, player_hand=[card("K")], phase="player-defend", pending=6)
    res = player_defend(session, card("K"), "sword", catalog=catalog, rnd=rnd)
    assert res.equipment_mismatch
    assert res.damage_dealt == 6


def test_defeat_clears_battle(session, catalog, rnd):
    session.player.health = 5
    arrange(session, player_hand=[card(3)], phase="player-defend", pending=8)
    res = player_defend(session, card(3), "light", catalog=catalog, rnd=rnd)
    assert res.outcome == "defeat"
    assert res.battle_over.victory is False
    assert res.player_health == 0
    assert session.player.health == 0
    assert session.battle is None


# ---------- full encounters ----------

def _total_cards(session):
    b = session.battle
    return b.player.total(), b.enemy.total()


@pytest.mark.parametrize("seed", range(5))
def test_full_encounter_conserves_cards_and_ends(seed, catalog):
    from main import play_battle

    results = play_battle("trickster", seed=seed, catalog=catalog)
    assert results[-1].outcome in ("victory", "defeat")
    assert all(r.damage_dealt >= 0 for r in results)
    assert sum(1 for r in results if r.outcome != "continue") == 1


def test_conservation_step_by_step(session, catalog):
    rng = random.Random(3)
    start_encounter(session, catalog.enemies["warden"], level=1, catalog=catalog, rnd=rng)
    expected = _total_cards(session)
    for _ in range(200):
        b = session.battle
        if b is None:
            break
        if b.phase == "player-attack":
            advance(session, "attack", b.player.hand[0], "sword", catalog=catalog, rnd=rng)
        elif b.phase == "enemy-turn":
            advance(session, "enemy-turn", catalog=catalog, rnd=rng)
        else:
            assert b.pending_enemy_damage > 0
            advance(session, "defend", b.player.hand[0], "light", catalog=catalog, rnd=rng)
        if session.battle is not None:
            assert _total_cards(session) == expected
            assert len(session.battle.player.hand) <= session.player.stats.focus
            if session.battle.phase != "player-defend":
                assert session.battle.pending_enemy_damage == 0


def test_battle_view(session, catalog, rnd):
    assert battle_view(session)["in_battle"] is False
    start_encounter(session, catalog.enemies["seer"], level=1, catalog=catalog, rnd=rnd)
    view = battle_view(session)
    assert view["phase"] == "player-attack"
    assert view["enemy_weapon"] == "bow"
    assert len(view["player_hand"]) == 4
    assert view["player_draw_pile"] == 48
