from __future__ import annotations

from collections.abc import Generator
from typing import Annotated

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.responses import JSONResponse
from loguru import logger

from oracle.client import PriceOracleClient

from . import schemas
from .core.config import settings
from .core.logging import configure_logging
from .db import SessionLocal, get_db, init_db
from .domain.models import RoundState
from .domain.ports import SystemClock
from .errors import NOT_FOUND_ERRORS, ErrorCategory, GameError, TransferFailed
from .services import PredictionGame
from .services.custody import RecordingCustody

app = FastAPI(title="Up/Down Rounds API", version="0.1.0", debug=settings.debug)


@app.on_event("startup")
def on_startup() -> None:
    """Create tables and seed the game configuration when the API boots."""

    configure_logging(settings)
    init_db()
    session = SessionLocal()
    try:
        with PriceOracleClient.from_settings(settings) as oracle:
            game = PredictionGame.from_settings(
                session,
                settings,
                clock=SystemClock(),
                oracle=oracle,
                custody=RecordingCustody(session),
            )
            game.initialize_config(settings.round_config_values())
    finally:
        session.close()


def _status_for(exc: GameError) -> int:
    if isinstance(exc, NOT_FOUND_ERRORS):
        return 404
    if isinstance(exc, TransferFailed):
        return 502
    return {
        ErrorCategory.TIMING: 409,
        ErrorCategory.STATE: 409,
        ErrorCategory.AUTHORIZATION: 403,
        ErrorCategory.EXTERNAL: 503,
    }.get(exc.category, 422)


@app.exception_handler(GameError)
def handle_game_error(request: Request, exc: GameError) -> JSONResponse:
    status_code = _status_for(exc)
    logger.info("{} {} -> {} {}", request.method, request.url.path, status_code, exc.code)
    return JSONResponse(
        status_code=status_code,
        content=schemas.ErrorResponse(error=exc.code, detail=exc.message).model_dump(),
    )


@app.get("/healthz", tags=["system"])
def healthcheck() -> dict[str, str]:
    """Basic readiness probe consumed by infrastructure monitors."""

    return {"status": "ok"}


def _game_service(db=Depends(get_db)) -> Generator[PredictionGame, None, None]:
    """Provide the game facade wired with a session, wall clock and HTTP oracle."""

    with PriceOracleClient.from_settings(settings) as oracle:
        yield PredictionGame.from_settings(
            db,
            settings,
            clock=SystemClock(),
            oracle=oracle,
            custody=RecordingCustody(db),
        )


GameDep = Annotated[PredictionGame, Depends(_game_service)]


# ----------------------------------------------------------------------
# Configuration


@app.get("/config", response_model=schemas.GameConfig, tags=["config"])
def get_config(game: GameDep):
    """Return the active game configuration."""

    return game.get_config()


@app.patch("/config", response_model=schemas.GameConfig, tags=["config"])
def update_config(
    payload: schemas.ConfigUpdate,
    game: GameDep,
    x_actor: Annotated[str | None, Header()] = None,
):
    """Apply an admin-authorized configuration change."""

    return game.update_config(x_actor, payload.changes())


# ----------------------------------------------------------------------
# Rounds


@app.post("/rounds/genesis", response_model=schemas.Round, status_code=201, tags=["rounds"])
def genesis(game: GameDep):
    """Open the first round of the sequence."""

    return game.genesis()


@app.post("/rounds/lock", response_model=schemas.LockResponse, tags=["rounds"])
def lock_round(game: GameDep):
    """Lock the open round once its lock time has passed and start the next one."""

    result = game.lock_round()
    return schemas.LockResponse(
        locked=schemas.Round.model_validate(result.locked),
        started=schemas.Round.model_validate(result.started),
        oracle_failed=result.oracle_failed,
    )


@app.post("/rounds/close", response_model=schemas.Round, tags=["rounds"])
def close_round(game: GameDep):
    """Close the oldest locked round once its close time has passed."""

    return game.close_round().round


@app.get("/rounds", response_model=schemas.RoundList, tags=["rounds"])
def list_rounds(
    game: GameDep,
    state: Annotated[RoundState | None, Query(description="Round state filter")] = None,
    order: Annotated[str, Query(pattern="^(asc|desc)$")] = "desc",
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
):
    """List rounds, newest first by default."""

    rounds, total = game.list_rounds(state=state, order=order, limit=limit, offset=offset)
    return schemas.RoundList(
        total=total, items=[schemas.Round.model_validate(item) for item in rounds]
    )


@app.get("/rounds/active", response_model=schemas.Round, tags=["rounds"])
def get_active_round(game: GameDep):
    """Return the round currently accepting bets."""

    record = game.get_active_round()
    if record is None:
        return JSONResponse(
            status_code=404,
            content=schemas.ErrorResponse(
                error="round_not_found", detail="No round is currently open"
            ).model_dump(),
        )
    return record


@app.get("/rounds/{epoch}", response_model=schemas.Round, tags=["rounds"])
def get_round(epoch: int, game: GameDep):
    """Retrieve a single round by epoch."""

    return game.get_round(epoch)


@app.get("/rounds/{epoch}/bets", response_model=schemas.BetList, tags=["bets"])
def list_round_bets(epoch: int, game: GameDep):
    """List every bet placed in a round."""

    bets = game.list_bets(epoch)
    return schemas.BetList(
        total=len(bets), items=[schemas.Bet.model_validate(bet) for bet in bets]
    )


@app.get("/rounds/{epoch}/bets/{participant}", response_model=schemas.Bet, tags=["bets"])
def get_bet(epoch: int, participant: str, game: GameDep):
    """Retrieve a participant's bet in a round."""

    return game.get_bet(epoch, participant)


# ----------------------------------------------------------------------
# Bets and claims


@app.post("/bets", response_model=schemas.Bet, status_code=201, tags=["bets"])
def place_bet(payload: schemas.BetRequest, game: GameDep):
    """Stake on the open round (or an explicit epoch)."""

    return game.place_bet(
        payload.participant, payload.side, payload.amount, epoch=payload.epoch
    )


@app.post("/rounds/{epoch}/claim", response_model=schemas.ClaimResponse, tags=["bets"])
def claim(epoch: int, payload: schemas.ClaimRequest, game: GameDep):
    """Settle a participant's bet and queue the payout transfer."""

    result = game.claim(epoch, payload.participant)
    return schemas.ClaimResponse(
        epoch=result.epoch,
        participant=result.participant,
        amount=result.amount,
        refund=result.refund,
    )


# ----------------------------------------------------------------------
# Treasury


@app.get("/treasury", response_model=schemas.Treasury, tags=["treasury"])
def get_treasury(game: GameDep):
    """Return accrued protocol fees."""

    return game.get_treasury()


@app.post("/treasury/withdraw", response_model=schemas.TreasuryWithdrawalResponse, tags=["treasury"])
def withdraw_treasury(
    payload: schemas.TreasuryWithdrawal,
    game: GameDep,
    x_actor: Annotated[str | None, Header()] = None,
):
    """Send accrued fees to the configured treasury address."""

    withdrawn = game.withdraw_treasury(x_actor, payload.amount)
    return schemas.TreasuryWithdrawalResponse(
        withdrawn=withdrawn,
        treasury=schemas.Treasury.model_validate(game.get_treasury()),
    )
