# persistence.py
from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import threading
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from deckrift.config import SAVE_VERSION
from deckrift.models import Card, parse_card
from deckrift.runtime_models import (
    BattleState, DeckState, EnemyAction, PlayerProfile, SessionRecord, Stats,
)

logger = logging.getLogger(__name__)

SESSION_ID_RE = re.compile(r"[A-Za-z0-9_-]+")


class InvalidSessionId(ValueError):
    def __init__(self, sid: str):
        super().__init__(f"Invalid session id {sid!r}: only letters, digits, - and _ are allowed")
        self.sid = sid


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _atomic_write_json(path: Path, data: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    # one temp file per write
    with tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", dir=path.parent, prefix=path.name + ".", suffix=".tmp", delete=False,
    ) as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
        f.flush()
        os.fsync(f.fileno())
    Path(f.name).replace(path)


def _backup_then_write(path: Path, data: Dict[str, Any]) -> None:
    """Write atomically and keep a .bak copy of the previous file if it exists."""
    bak = path.with_suffix(path.suffix + ".bak")
    if path.exists():
        try:
            path.replace(bak)
        except OSError:
            # if backup fails, still try to write the new file
            logger.warning("could not back up %s", path)
    _atomic_write_json(path, data)


# ---------- records <-> plain dicts ----------

def card_to_dict(c: Card) -> Dict[str, str]:
    return {"rank": c.rank, "suit": c.suit}


def _cards(raw: Any) -> list[Card]:
    return [parse_card(c) for c in (raw or [])]


def deck_state_to_dict(ds: DeckState) -> Dict[str, Any]:
    return {
        "draw_pile": [card_to_dict(c) for c in ds.draw_pile],
        "discard_pile": [card_to_dict(c) for c in ds.discard_pile],
        "hand": [card_to_dict(c) for c in ds.hand],
    }


def deck_state_from_dict(d: Dict[str, Any]) -> DeckState:
    return DeckState(
        draw_pile=_cards(d.get("draw_pile")),
        discard_pile=_cards(d.get("discard_pile")),
        hand=_cards(d.get("hand")),
    )


def battle_to_dict(b: BattleState) -> Dict[str, Any]:
    d = asdict(b)
    d["turn"] = b.turn
    d["player"] = deck_state_to_dict(b.player)
    d["enemy"] = deck_state_to_dict(b.enemy)
    return d


def battle_from_dict(d: Dict[str, Any]) -> BattleState:
    last = d.get("last_enemy_action")
    last_action = None
    if last:
        card = last.get("card")
        last_action = EnemyAction(
            card=parse_card(card) if card else None,
            weapon=last.get("weapon", ""),
            damage=int(last.get("damage", 0)),
        )

    return BattleState(
        enemy_name=d.get("enemy_name", "Enemy"),
        enemy_weapon=d.get("enemy_weapon", "sword"),
        enemy_stats=Stats(**d.get("enemy_stats", {})),
        enemy_health=int(d.get("enemy_health", 0)),
        enemy_max_health=int(d.get("enemy_max_health", 0)),
        phase=d.get("phase", "player-attack"),
        enemy_boss=bool(d.get("enemy_boss", False)),
        player=deck_state_from_dict(d.get("player") or {}),
        enemy=deck_state_from_dict(d.get("enemy") or {}),
        pending_enemy_damage=int(d.get("pending_enemy_damage", 0)),
        enemy_discards_used=int(d.get("enemy_discards_used", 0)),
        equipped_weapon=d.get("equipped_weapon"),
        equipped_armor=d.get("equipped_armor"),
        last_enemy_action=last_action,
    )


def player_to_dict(p: PlayerProfile) -> Dict[str, Any]:
    return {
        "stats": p.stats.as_dict(),
        "health": p.health,
        "max_health": p.max_health,
        "equipment": list(p.equipment),
        "deck": [card_to_dict(c) for c in p.deck],
    }


def player_from_dict(d: Dict[str, Any]) -> PlayerProfile:
    return PlayerProfile(
        stats=Stats(**d.get("stats", {})),
        health=int(d.get("health", 0)),
        max_health=int(d.get("max_health", 0)),
        equipment=list(d.get("equipment", [])),
        deck=_cards(d.get("deck")),
    )


# ---------- payloads ----------

def make_save_payload(*, version: int, session: SessionRecord) -> Dict[str, Any]:
    return {
        "version": version,
        "app": "deckrift_battle",
        "saved_at": _utc_now_iso(),
        "sid": session.sid,
        "player": player_to_dict(session.player),
        "battle": battle_to_dict(session.battle) if session.battle else None,
    }


def restore_session_from_payload(payload: Dict[str, Any]) -> SessionRecord:
    battle_raw = payload.get("battle")
    return SessionRecord(
        sid=payload["sid"],
        player=player_from_dict(payload.get("player") or {}),
        battle=battle_from_dict(battle_raw) if battle_raw else None,
    )


def load_save_payload(path: Path) -> Optional[Dict[str, Any]]:
    if not path.exists():
        return None
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError):
        # try backup if main file is corrupted
        logger.warning("save %s is unreadable, trying backup", path)
        bak = path.with_suffix(path.suffix + ".bak")
        if bak.exists():
            try:
                with bak.open("r", encoding="utf-8") as f:
                    return json.load(f)
            except (OSError, json.JSONDecodeError):
                logger.warning("backup %s is unreadable too", bak)
                return None
        return None


def save_current(path: Path, payload: Dict[str, Any]) -> None:
    _backup_then_write(path, payload)


# ---------- store ----------

def _check_sid(sid: str) -> None:
    if not SESSION_ID_RE.fullmatch(sid or ""):
        raise InvalidSessionId(sid)


class JsonSaveStore:
    """One JSON document per session id; every save replaces the whole document.

    `lock(sid)` serialises load-mutate-save for one session. It is re-entrant,
    so `save` can take it again while a caller already holds it.
    """

    def __init__(self, saves_dir: Path, version: int = SAVE_VERSION):
        self.saves_dir = Path(saves_dir)
        self.version = version
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def lock(self, sid: str) -> threading.RLock:
        _check_sid(sid)
        with self._locks_guard:
            lock = self._locks.get(sid)
            if lock is None:
                lock = self._locks[sid] = threading.RLock()
            return lock

    def path_for(self, sid: str) -> Path:
        _check_sid(sid)
        return self.saves_dir / f"_current_{sid}.json"

    def load(self, sid: str) -> Optional[SessionRecord]:
        payload = load_save_payload(self.path_for(sid))
        if not payload:
            return None
        return restore_session_from_payload(payload)

    def save(self, session: SessionRecord) -> None:
        path = self.path_for(session.sid)
        with self.lock(session.sid):
            save_current(path, make_save_payload(version=self.version, session=session))
