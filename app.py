from __future__ import annotations

import logging
import random
import uuid
from dataclasses import asdict
from typing import Any, Callable, Dict, Optional, TypeVar

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, Field, field_validator

from deckrift.battle import TurnResult, advance, battle_view, current_state, start_encounter
from deckrift.config import Settings, configure_logging
from deckrift.errors import (
    DeckriftError, EncounterAlreadyActive, InvalidAction, InvalidCard, InvalidIndex,
    NoActiveEncounter, WrongPhase,
)
from deckrift.loader import Catalog, load_catalog
from deckrift.runtime import spawn_player
from deckrift.runtime_models import SessionRecord

from persistence import InvalidSessionId, JsonSaveStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

# the browser client sends phase names, the core uses short action names
ACTION_ALIASES = {
    "player-attack": "attack",
    "player-defend": "defend",
    "attack": "attack",
    "defend": "defend",
}


class CardIn(BaseModel):
    # the browser client sends the rank as `value`, numeric ranks as ints
    rank: str = Field(validation_alias=AliasChoices("rank", "value"))
    suit: str

    @field_validator("rank", mode="before")
    @classmethod
    def _rank_as_text(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class StartBattleIn(BaseModel):
    enemy_id: str
    level: int = 1
    realm: int = 1


class PlayCardIn(BaseModel):
    action: str
    card: CardIn
    weapon: Optional[str] = None
    armor: Optional[str] = None


class UnknownSession(DeckriftError):
    def __init__(self, sid: str):
        super().__init__(f"No save found for session '{sid}'")
        self.sid = sid


# ---------- pure helpers (no I/O) ----------

def uuid_short() -> str:
    return uuid.uuid4().hex[:12]


def turn_result_to_dict(r: TurnResult) -> Dict[str, Any]:
    outcome = r.battle_over
    return {
        "action": r.action,
        "newPhase": r.new_phase,
        "outcome": r.outcome,
        "cardPlayed": asdict(r.card_played) if r.card_played else None,
        "equipmentUsed": r.equipment_used,
        "rawDamage": r.raw_damage,
        "damageDealt": r.damage_dealt,
        "instantKill": r.instant_kill,
        "equipmentMismatch": r.equipment_mismatch,
        "playerHp": r.player_health,
        "enemyHp": r.enemy_health,
        "playerHand": [asdict(c) for c in r.player_hand],
        "enemyHandSize": r.enemy_hand_size,
        "enemyDiscarded": asdict(r.enemy_discarded) if r.enemy_discarded else None,
        "battleOver": asdict(outcome) if outcome else None,
    }


def _error_body(exc: Exception, **extra: Any) -> Dict[str, Any]:
    return {"success": False, "error": str(exc), "kind": type(exc).__name__, **extra}


# ---------- app ----------

def create_app(settings: Optional[Settings] = None, catalog: Optional[Catalog] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    catalog = catalog or load_catalog(settings.data_dir)
    store = JsonSaveStore(settings.saves_dir)
    rnd = random.Random(settings.seed)

    api = FastAPI(title="Deckrift battle core")
    api.state.settings = settings
    api.state.catalog = catalog
    api.state.store = store

    # ---------- error mapping ----------

    @api.exception_handler(WrongPhase)
    async def _wrong_phase(request: Request, exc: WrongPhase) -> JSONResponse:
        return JSONResponse(status_code=409, content=_error_body(exc, currentState=exc.current_state))

    @api.exception_handler(EncounterAlreadyActive)
    async def _already_active(request: Request, exc: EncounterAlreadyActive) -> JSONResponse:
        return JSONResponse(status_code=409, content=_error_body(exc))

    @api.exception_handler(NoActiveEncounter)
    async def _no_encounter(request: Request, exc: NoActiveEncounter) -> JSONResponse:
        return JSONResponse(status_code=404, content=_error_body(exc))

    @api.exception_handler(UnknownSession)
    async def _unknown_session(request: Request, exc: UnknownSession) -> JSONResponse:
        return JSONResponse(status_code=404, content=_error_body(exc))

    @api.exception_handler(InvalidCard)
    @api.exception_handler(InvalidIndex)
    @api.exception_handler(InvalidAction)
    @api.exception_handler(InvalidSessionId)
    async def _bad_request(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=400, content=_error_body(exc))

    # ---------- persistence ----------

    def load_session(sid: str) -> SessionRecord:
        session = store.load(sid)
        if session is None:
            raise UnknownSession(sid)
        return session

    def mutate(sid: str, fn: Callable[[SessionRecord], T]) -> tuple[SessionRecord, T]:
        """Load, run one transition, save the whole document, all under the session lock."""
        with store.lock(sid):
            session = load_session(sid)
            result = fn(session)
            store.save(session)
        return session, result

    # ---------- routes ----------

    @api.post("/api/session")
    def new_session() -> Dict[str, Any]:
        session = SessionRecord(sid=uuid_short(), player=spawn_player(catalog.starting_equipment()))
        store.save(session)
        logger.info("new run sid=%s", session.sid)
        return {"success": True, "sid": session.sid, "state": battle_view(session)}

    @api.get("/api/battle")
    def get_battle(x_session_id: str = Header(...)) -> Dict[str, Any]:
        return {"success": True, "state": battle_view(load_session(x_session_id))}

    @api.post("/api/battle/start")
    def start_battle(body: StartBattleIn, x_session_id: str = Header(...)) -> Dict[str, Any]:
        enemy = catalog.enemies.get(body.enemy_id)
        if enemy is None:
            raise HTTPException(status_code=404, detail=f"Unknown enemy '{body.enemy_id}'")

        session, _ = mutate(
            x_session_id,
            lambda s: start_encounter(s, enemy, body.level, catalog=catalog, rnd=rnd, realm=body.realm),
        )
        return {"success": True, "redirect": "/battle", "state": battle_view(session)}

    @api.post("/api/battle/play-card")
    def play_card(body: PlayCardIn, x_session_id: str = Header(...)) -> Dict[str, Any]:
        action = ACTION_ALIASES.get(body.action)
        if action is None:
            raise InvalidAction(body.action)
        equipment_id = body.weapon if action == "attack" else body.armor

        _, result = mutate(
            x_session_id,
            lambda s: advance(
                s, action, body.card.model_dump(), equipment_id,
                catalog=catalog, rnd=rnd, instant_kill_bosses=settings.instant_kill_bosses,
            ),
        )
        return {"success": True, **turn_result_to_dict(result)}

    @api.post("/api/battle/enemy-turn")
    def process_enemy_turn(x_session_id: str = Header(...)) -> Dict[str, Any]:
        _, result = mutate(
            x_session_id,
            lambda s: advance(s, "enemy-turn", catalog=catalog, rnd=rnd),
        )
        return {"success": True, **turn_result_to_dict(result)}

    @api.get("/api/battle/status")
    def battle_status(x_session_id: str = Header(...)) -> Dict[str, Any]:
        return {"success": True, **current_state(load_session(x_session_id))}

    return api


app = create_app()
