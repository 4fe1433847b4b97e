"""Permissionless keeper that advances rounds as their deadlines pass."""

from __future__ import annotations

import argparse
import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from loguru import logger
from sqlalchemy.orm import Session

from oracle.client import PriceOracleClient
from updown.core.config import Settings, get_settings
from updown.core.logging import configure_logging
from updown.db import SessionLocal, init_db
from updown.domain.ports import Clock, PriceOracle, SystemClock
from updown.errors import AlreadyLocked, NotInitialized, NotLocked, TooEarly
from updown.services import PredictionGame
from updown.services.custody import RecordingCustody

# Bounds a single sweep when the keeper has fallen behind by many rounds.
MAX_TRANSITIONS_PER_SWEEP = 100


@dataclass(slots=True)
class KeeperSummary:
    sweeps: int = 0
    locked_epochs: list[int] = field(default_factory=list)
    closed_epochs: list[int] = field(default_factory=list)
    oracle_fallbacks: list[int] = field(default_factory=list)
    skipped: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sweeps": self.sweeps,
            "locked_epochs": self.locked_epochs,
            "closed_epochs": self.closed_epochs,
            "oracle_fallbacks": self.oracle_fallbacks,
            "skipped": self.skipped,
        }


class Keeper:
    """Close every due locked round, then lock the due open round."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        session_factory: Callable[[], Session] = SessionLocal,
        oracle: PriceOracle | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._session_factory = session_factory
        self._owned_oracle: PriceOracleClient | None = None
        if oracle is None:
            self._owned_oracle = PriceOracleClient.from_settings(self.settings)
            oracle = self._owned_oracle
        self._oracle = oracle
        self._clock = clock or SystemClock()

    def sweep(self, summary: KeeperSummary | None = None) -> KeeperSummary:
        summary = summary or KeeperSummary()
        summary.sweeps += 1
        session = self._session_factory()
        try:
            game = PredictionGame.from_settings(
                session,
                self.settings,
                clock=self._clock,
                oracle=self._oracle,
                custody=RecordingCustody(session),
            )
            for _ in range(MAX_TRANSITIONS_PER_SWEEP):
                progressed = self._close_due(game, summary)
                progressed = self._lock_due(game, summary) or progressed
                if not progressed:
                    break
        finally:
            session.close()
        return summary

    def run(
        self,
        *,
        once: bool = False,
        max_sweeps: int | None = None,
        poll_seconds: float | None = None,
    ) -> KeeperSummary:
        poll = poll_seconds or self.settings.keeper_poll_seconds
        summary = KeeperSummary()
        logger.info("Keeper starting: once={}, poll_seconds={}", once, poll)
        while True:
            self.sweep(summary)
            if once or (max_sweeps is not None and summary.sweeps >= max_sweeps):
                break
            time.sleep(poll)
        logger.info(
            "Keeper finished: sweeps={}, locked={}, closed={}",
            summary.sweeps,
            len(summary.locked_epochs),
            len(summary.closed_epochs),
        )
        return summary

    def close(self) -> None:
        if self._owned_oracle is not None:
            self._owned_oracle.close()

    def _close_due(self, game: PredictionGame, summary: KeeperSummary) -> bool:
        try:
            result = game.close_round()
        except (NotLocked, TooEarly) as exc:
            logger.debug("Nothing to close: {}", exc)
            return False
        except NotInitialized as exc:
            summary.skipped.append({"step": "close", "reason": exc.code})
            return False
        summary.closed_epochs.append(result.round.epoch)
        return True

    def _lock_due(self, game: PredictionGame, summary: KeeperSummary) -> bool:
        try:
            result = game.lock_round()
        except (TooEarly, AlreadyLocked) as exc:
            logger.debug("Nothing to lock: {}", exc)
            return False
        except NotInitialized as exc:
            summary.skipped.append({"step": "lock", "reason": exc.code})
            return False
        summary.locked_epochs.append(result.locked.epoch)
        if result.oracle_failed:
            summary.oracle_fallbacks.append(result.locked.epoch)
        return True


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Lock and close prediction rounds as their deadlines pass",
    )
    parser.add_argument("--once", action="store_true", help="Run a single sweep and exit")
    parser.add_argument(
        "--max-sweeps",
        type=int,
        default=None,
        help="Stop after N sweeps (default: run until interrupted)",
    )
    parser.add_argument(
        "--poll-seconds",
        type=float,
        default=None,
        help="Override the delay between sweeps",
    )
    parser.add_argument(
        "--summary-path",
        type=Path,
        default=None,
        help="Optional path where a JSON summary report will be written",
    )
    return parser.parse_args()


def _write_summary(summary: KeeperSummary, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(summary.to_dict(), default=str, indent=2))
    logger.info("Keeper summary written to {}", path)


def main() -> KeeperSummary:
    args = _parse_args()
    settings = get_settings()
    configure_logging(settings)
    init_db()
    keeper = Keeper(settings)
    try:
        summary = keeper.run(
            once=args.once,
            max_sweeps=args.max_sweeps,
            poll_seconds=args.poll_seconds,
        )
    except KeyboardInterrupt:
        logger.info("Keeper interrupted")
        summary = KeeperSummary()
    finally:
        keeper.close()

    if args.summary_path:
        _write_summary(summary, args.summary_path)
    return summary


if __name__ == "__main__":
    main()
