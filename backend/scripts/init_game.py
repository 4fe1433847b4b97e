import argparse

from loguru import logger

from oracle.client import PriceOracleClient
from updown.core.config import get_settings
from updown.core.logging import configure_logging
from updown.db import init_db, session_scope
from updown.domain.ports import SystemClock
from updown.errors import AlreadyInitialized
from updown.services import PredictionGame
from updown.services.custody import RecordingCustody


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create tables, seed configuration, open round 1")
    parser.add_argument(
        "--genesis",
        action="store_true",
        help="Also open the genesis round if no round exists yet",
    )
    parser.add_argument(
        "--admin",
        action="append",
        default=None,
        metavar="ADDRESS",
        help="Admin address to seed (repeatable); overrides ADMINS from the environment",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    settings = get_settings()
    configure_logging(settings)
    init_db()

    values = settings.round_config_values()
    if args.admin:
        values["admins"] = [address.strip() for address in args.admin if address.strip()]

    with PriceOracleClient.from_settings(settings) as oracle:
        with session_scope() as session:
            game = PredictionGame.from_settings(
                session,
                settings,
                clock=SystemClock(),
                oracle=oracle,
                custody=RecordingCustody(session),
            )
            config = game.initialize_config(values)
            logger.info(
                "Configuration ready: asset={}, interval={}s, fee_bps={}",
                config.asset_id,
                config.round_interval_seconds,
                config.fee_bps,
            )
            if args.genesis:
                try:
                    record = game.genesis()
                except AlreadyInitialized:
                    logger.warning("Genesis skipped: rounds already exist")
                else:
                    logger.info("Round {} open until {}", record.epoch, record.lock_time)


if __name__ == "__main__":
    main()
