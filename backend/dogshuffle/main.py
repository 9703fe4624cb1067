"""Dog Shuffle FastAPI application."""
import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from dogshuffle.config import settings
from dogshuffle.config_hash import get_config_hash
from dogshuffle.errors import ErrorCode, GameError
from dogshuffle.logic.engine import GameEngine
from dogshuffle.middleware import ErrorHandlerMiddleware, PlayerIdMiddleware
from dogshuffle.protocol import (
    Configuration,
    InitResponse,
    Outcome,
    PlayerState,
    SpinRequest,
    SpinResponse,
    StateResponse,
    WagerRequest,
)
from dogshuffle.session import GameSession
from dogshuffle.state_store import state_store
from dogshuffle.telemetry import (
    InitServedEvent,
    SpinProcessedEvent,
    SpinRejectedEvent,
    StateResetEvent,
    telemetry_service,
)
from dogshuffle.validators import validate_wager


logger = logging.getLogger(__name__)

# Rejections worth reporting; anything else is a client or server bug
REJECTION_CODES = {
    ErrorCode.ROUND_IN_PROGRESS,
    ErrorCode.INVALID_WAGER,
    ErrorCode.INSUFFICIENT_FUNDS,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage Redis connection lifecycle."""
    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
    await state_store.connect()
    yield
    await state_store.close()


app = FastAPI(
    title="Dog Shuffle",
    version="0.1.0",
    description="Does Noah got that dog in 'em? A one-lever novelty slot.",
    lifespan=lifespan,
)

app.add_middleware(ErrorHandlerMiddleware)
app.add_middleware(PlayerIdMiddleware)

# Game engine instance
engine = GameEngine()


@app.exception_handler(GameError)
async def game_error_handler(request: Request, exc: GameError):
    return exc.to_response()


def _open_session(player_id: str) -> GameSession:
    return GameSession(
        player_id,
        state_store,
        engine=engine,
        spin_delay=settings.spin_delay_seconds,
    )


def _configuration() -> Configuration:
    return Configuration(
        currency=settings.currency,
        startingBalance=settings.starting_balance,
        minWager=settings.min_wager,
        maxWager=settings.max_wager,
        wagerStep=settings.wager_step,
        winCategory=settings.win_category,
        imagePoolSizes=dict(settings.image_pool_sizes),
        spinDelayMs=int(settings.spin_delay_seconds * 1000),
    )


@app.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/init")
async def init(request: Request) -> dict:
    """Return configuration and the player's saved state (or defaults)."""
    player_id = request.state.player_id

    session = _open_session(player_id)
    state = await session.load()

    telemetry_service.emit_init_served(
        InitServedEvent(
            player_id=player_id,
            balance=state.balance,
            games_played=state.games_played,
        )
    )

    response = InitResponse(
        configuration=_configuration(),
        state=PlayerState.from_game_state(state),
    )
    return response.model_dump()


@app.get("/state")
async def get_state(request: Request) -> dict:
    """Return the player's saved state (or defaults)."""
    state = await _open_session(request.state.player_id).load()
    return StateResponse(state=PlayerState.from_game_state(state)).model_dump()


@app.post("/spin")
async def spin(request: Request, body: SpinRequest | None = None) -> dict:
    """
    Pull the lever.

    Implements:
    - Per-player locking (ROUND_IN_PROGRESS while a spin is pending)
    - Wager validation (INVALID_WAGER / INSUFFICIENT_FUNDS)
    - Simulated spin delay, then atomic resolution and a single save
    """
    player_id = request.state.player_id
    body = body or SpinRequest()
    session: GameSession | None = None

    try:
        async with state_store.spin_lock(player_id) as lock_metrics:
            session = _open_session(player_id)
            state = await session.load()

            wager = state.wager if body.wager is None else body.wager
            validate_wager(wager)

            resolution = await session.spin(wager)
    except GameError as e:
        if e.code in REJECTION_CODES:
            current = session.state if session is not None else None
            telemetry_service.emit_spin_rejected(
                SpinRejectedEvent(
                    player_id=player_id,
                    reason=e.code.value,
                    wager=body.wager,
                    balance=current.balance if current is not None else None,
                )
            )
        raise

    round_id = str(uuid.uuid4())
    outcome = resolution.outcome

    telemetry_service.emit_spin_processed(
        SpinProcessedEvent(
            player_id=player_id,
            round_id=round_id,
            config_hash=get_config_hash(),
            wager=resolution.wager,
            category=outcome.category.value,
            result=outcome.result.value,
            payout=resolution.payout,
            balance_before=resolution.previous_balance,
            balance_after=resolution.next_state.balance,
            lock_acquire_ms=lock_metrics.acquire_ms,
        )
    )

    response = SpinResponse(
        roundId=round_id,
        wager=resolution.wager,
        payout=resolution.payout,
        outcome=Outcome(
            category=outcome.category,
            result=outcome.result,
            imageRef=outcome.image_ref,
        ),
        state=PlayerState.from_game_state(resolution.next_state),
    )
    return response.model_dump(mode="json")


@app.post("/wager")
async def wager(request: Request, body: WagerRequest) -> dict:
    """Step the standing wager up or down within the allowed range."""
    player_id = request.state.player_id

    async with state_store.spin_lock(player_id):
        session = _open_session(player_id)
        await session.load()
        state = await session.update_wager(body.direction.step)

    return StateResponse(state=PlayerState.from_game_state(state)).model_dump()


@app.post("/reset")
async def reset(request: Request) -> dict:
    """Wipe the player's saved state and start over."""
    player_id = request.state.player_id

    async with state_store.spin_lock(player_id):
        session = _open_session(player_id)
        previous = await session.load()
        state = await session.reset()

    telemetry_service.emit_state_reset(
        StateResetEvent(
            player_id=player_id,
            previous_balance=previous.balance,
            previous_games_played=previous.games_played,
        )
    )
    logger.info("Player %s reset their game", player_id)

    return StateResponse(state=PlayerState.from_game_state(state)).model_dump()
