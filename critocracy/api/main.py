"""
FastAPI backend for Critocracy.
Exposes the game session entry points over REST. One game is active at a time;
it is persisted after every accepted action and reloaded at startup.
"""

import json
import uuid
from dataclasses import asdict
from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .database import SessionLocal, get_db, init_db
from .models import GameRecord

from critocracy.config import DEFAULT_SETUP_ID
from critocracy.engine.actions import Action
from critocracy.engine.definitions import list_setups
from critocracy.engine.errors import GameError
from critocracy.engine.game_log import GameLog
from critocracy.engine.queries import get_move_preview
from critocracy.engine.session import ActionResult, GameSession
from critocracy.engine.state import GameState
from critocracy.engine.utils import make_game_config

app = FastAPI(
    title="Critocracy API",
    description="Backend API for Critocracy - a race along four branching paths of history",
    version="1.0.0",
)

# CORS configuration for frontend
CORS_ORIGINS = ["http://localhost:5173", "http://localhost:5174", "http://localhost:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)


class ActionRejected(Exception):
    """An engine error surfaced to the client as a 400."""

    def __init__(self, message: str, kind: str | None):
        super().__init__(message)
        self.kind = kind


@app.middleware("http")
async def log_requests(request, call_next):
    """Log method and path so 500s can be traced to the failing endpoint."""
    method = getattr(request, "method", "?")
    url = getattr(request, "url", None)
    path = url.path if url else "?"
    try:
        response = await call_next(request)
        if response.status_code >= 500:
            print(f"[500] {method} {path}", flush=True)
        return response
    except Exception:
        print(f"[500] {method} {path} (exception)", flush=True)
        raise


@app.exception_handler(ActionRejected)
async def action_rejected_handler(request, exc: ActionRejected):
    return JSONResponse(status_code=400, content={"detail": str(exc), "error": exc.kind})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request, exc):
    """Return 500 with CORS headers and full traceback so the frontend can read the error."""
    import traceback
    tb = traceback.format_exc()
    traceback.print_exc()
    origin = request.headers.get("origin")
    allow_origin = origin if origin in CORS_ORIGINS else CORS_ORIGINS[0]
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc), "traceback": tb},
        headers={
            "Access-Control-Allow-Origin": allow_origin,
            "Access-Control-Allow-Credentials": "true",
        },
    )


# The active game session and its log (one game at a time)
session = GameSession(DEFAULT_SETUP_ID)
game_log = GameLog()
session.subscribe(game_log)
active_game_id: str | None = None


# ===== Pydantic Models =====

class PlayerSeat(BaseModel):
    name: str
    id: str | None = None
    is_human: bool = True
    """Role id from GET /definitions (e.g. 'Historian'). Omitted = dealt at random."""
    role: str | None = None


class NewGameRequest(BaseModel):
    players: list[PlayerSeat]
    seed: int | None = None
    """Setup id from GET /setups. Omitted = default from critocracy.config.DEFAULT_SETUP_ID."""
    setup_id: str | None = None
    max_turns: int | None = None
    turn_order_policy: str | None = None  # "random" | "seated"
    skip_finished_players: bool | None = None
    draw_end_of_turn_cards: bool | None = None
    reshuffle_exhausted_decks: bool | None = None
    """Run role selection and turn order right away (default). False leaves the game in setup."""
    auto_setup: bool = True


class PlayerRequest(BaseModel):
    """player_id omitted = the active player."""
    player_id: str | None = None


class PathRequest(PlayerRequest):
    color: str


class RollRequest(PlayerRequest):
    value: int | None = None  # omitted = rolled by the server


class ChoiceRequest(PlayerRequest):
    coordinates: list[int]  # [x, y] of one of the offered branches


class AutoplayRequest(BaseModel):
    max_actions: int = 1000


# ===== Helper Functions =====

def _use_session(setup_id: str) -> GameSession:
    """Switch the active session to another setup; the log follows it."""
    global session
    if session.definitions.manifest.get("id") != setup_id:
        try:
            new_session = GameSession(setup_id)
        except GameError as e:
            raise ActionRejected(str(e), e.kind)
        new_session.subscribe(game_log)
        session = new_session
    return session


def _require_game() -> GameState:
    if session.state is None or active_game_id is None:
        raise HTTPException(status_code=404, detail="No game in progress")
    return session.state


def save_game(db: Session) -> None:
    """Persist the active game state and its action history."""
    state = session.state
    row = db.query(GameRecord).filter(GameRecord.id == active_game_id).first()
    if row is None:
        row = GameRecord(id=active_game_id, setup_id=state.config.setup_id, seed=state.seed)
        db.add(row)
    row.game_state = state.to_json()
    row.actions = json.dumps([a.to_dict() for a in session.actions])
    row.status = "finished" if state.phase == "game_over" else "active"
    db.commit()


def load_active_game(db: Session) -> bool:
    """Resume the most recently updated active game, if any."""
    global active_game_id
    row = (
        db.query(GameRecord)
        .filter(GameRecord.status == "active")
        .order_by(GameRecord.updated_at.desc())
        .first()
    )
    if row is None:
        return False
    try:
        state = GameState.from_json(row.game_state)
        actions = [Action.from_dict(a) for a in json.loads(row.actions or "[]")]
        _use_session(row.setup_id).load_state(state, actions)
    except (ValueError, ActionRejected) as e:
        # Corrupt or stale record: leave the server without an active game
        print(f"Could not resume game {row.id}: {e}", flush=True)
        return False
    game_log.clear(state)
    active_game_id = row.id
    return True


def _respond(result: ActionResult, db: Session) -> dict[str, Any]:
    """Persist after an accepted action; turn a rejected one into a 400."""
    if not result.ok:
        raise ActionRejected(result.error, result.error_kind)
    save_game(db)
    return {
        "game_id": active_game_id,
        "state": session.get_game_state(),
        "events": [e.to_dict() for e in result.events],
        "outcome": result.outcome,
    }


@app.on_event("startup")
def on_startup():
    init_db()
    db = SessionLocal()
    try:
        load_active_game(db)
    finally:
        db.close()


# ===== API Endpoints =====

@app.get("/")
def root():
    return {"message": "Critocracy API", "version": "1.0.0"}


@app.get("/setups")
def get_setups():
    """List available setups (id, display_name). Use setup_id in POST /game."""
    return {"setups": list_setups()}


@app.get("/definitions")
def get_definitions():
    """Board, roles and cards of the active setup."""
    defs = session.definitions
    return {
        "setup": defs.manifest,
        "board": defs.board.to_dict(),
        "roles": {rid: asdict(r) for rid, r in defs.roles.items()},
        "cards": {
            deck_id: [c.to_dict() for c in cards]
            for deck_id, cards in defs.library.decks.items()
        },
    }


@app.post("/game")
def create_game(request: NewGameRequest, db: Session = Depends(get_db)):
    """Start a new game, replacing the active one. Runs setup unless auto_setup is false."""
    global active_game_id
    setup_id = request.setup_id or DEFAULT_SETUP_ID
    current = _use_session(setup_id)
    config = make_game_config(
        setup_id=setup_id,
        manifest=current.definitions.manifest,
        max_turns=request.max_turns,
        turn_order_policy=request.turn_order_policy,
        skip_finished_players=request.skip_finished_players,
        draw_end_of_turn_cards=request.draw_end_of_turn_cards,
        reshuffle_exhausted_decks=request.reshuffle_exhausted_decks,
    )
    result = current.new_game(
        [seat.model_dump() for seat in request.players],
        seed=request.seed,
        config=config,
    )
    if not result.ok:
        raise ActionRejected(result.error, result.error_kind)

    # The previous game is abandoned
    if active_game_id is not None:
        old = db.query(GameRecord).filter(GameRecord.id == active_game_id).first()
        if old is not None and old.status == "active":
            old.status = "abandoned"
            db.commit()
    active_game_id = str(uuid.uuid4())
    game_log.clear()

    if request.auto_setup:
        setup_result = current.setup_game()
        if not setup_result.ok:
            save_game(db)
            raise ActionRejected(setup_result.error, setup_result.error_kind)
    save_game(db)
    return {"game_id": active_game_id, "state": current.get_game_state()}


@app.get("/game")
def get_game_state():
    """Current game state, including available actions and standings."""
    _require_game()
    return {
        "game_id": active_game_id,
        "state": session.get_game_state(),
        "rankings": session.rankings(),
    }


@app.get("/game/available-actions")
def get_available_actions():
    """What the active player may do now, with a landing preview when a roll is due."""
    state = _require_game()
    actions = session.available_actions()
    if "roll" in actions["actions"]:
        actions["preview"] = get_move_preview(state, session.board)["destinations"]
    return actions


@app.get("/game/log")
def get_game_log(player_id: str | None = None, event_type: str | None = None, limit: int = 50):
    _require_game()
    entries = game_log.filter(player_id=player_id, event_type=event_type)
    return {
        "entries": [e.to_dict() for e in entries[-limit:]],
        "formatted": game_log.formatted(limit=limit, player_id=player_id, event_type=event_type),
        "resource_history": game_log.to_dict()["resource_history"],
    }


@app.post("/game/setup")
def do_setup(db: Session = Depends(get_db)):
    """Run role selection, turn order and the first turn for a game created with auto_setup false."""
    _require_game()
    return _respond(session.setup_game(), db)


@app.post("/game/path")
def do_choose_path(request: PathRequest, db: Session = Depends(get_db)):
    """Commit the active player to a starting path."""
    _require_game()
    return _respond(session.choose_path(request.color, request.player_id), db)


@app.post("/game/roll")
def do_roll(request: RollRequest, db: Session = Depends(get_db)):
    """Roll and move. The outcome says where and why movement stopped."""
    _require_game()
    return _respond(session.roll(request.value, request.player_id), db)


@app.post("/game/choice")
def do_resolve_choice(request: ChoiceRequest, db: Session = Depends(get_db)):
    """Pick a branch at a choicepoint."""
    _require_game()
    return _respond(session.resolve_choice(request.coordinates, request.player_id), db)


@app.post("/game/card/ack")
def do_acknowledge_card(request: PlayerRequest, db: Session = Depends(get_db)):
    """Apply the drawn path card."""
    _require_game()
    return _respond(session.acknowledge_card(request.player_id), db)


@app.post("/game/end-turn")
def do_end_turn(request: PlayerRequest, db: Session = Depends(get_db)):
    """End the turn (draws the end-of-turn card) and pass play on."""
    _require_game()
    return _respond(session.end_turn(request.player_id), db)


@app.post("/game/autoplay")
def do_autoplay(request: AutoplayRequest, db: Session = Depends(get_db)):
    """Play for non-human players until a human is to move or the game ends."""
    _require_game()
    results = session.play_non_human(max_actions=request.max_actions)
    save_game(db)
    rejected = [r for r in results if not r.ok]
    return {
        "game_id": active_game_id,
        "state": session.get_game_state(),
        "actions_taken": len(results) - len(rejected),
        "events": [e.to_dict() for r in results for e in r.events],
        "error": rejected[0].error if rejected else None,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
