"""
dbagent entry point.

Three modes:

* ``api``  - serve the REST API with uvicorn (default);
* ``cli``  - start the API on the loopback interface in a daemon thread and open the shell;
* ``seed`` - load the sample ``users`` collection into the configured database and exit.
"""

import argparse
import logging
import sys
import threading

from dbagent.api.app import run_api
from dbagent.config import settings

logger = logging.getLogger(__name__)

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")
_SECRET_SETTINGS = {"OPENROUTER_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY"}


def _init_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stdout,
    )
    # Driver and transport loggers stay at WARNING whatever the agent level is
    for noisy in ("httpx", "pymongo"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dbagent", description="Tool-calling AI agent for MongoDB"
    )
    parser.add_argument(
        "--mode",
        choices=["api", "cli", "seed"],
        type=str.lower,
        default="api",
        help="What to run (default: %(default)s)",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Agent log level (default from LOG_LEVEL: %(default)s)",
    )
    parser.add_argument(
        "--replace",
        action="store_true",
        help="seed mode only: empty the users collection before inserting",
    )
    return parser


def _seed(replace: bool) -> int:
    # pylint: disable=import-outside-toplevel
    from pymongo.errors import PyMongoError

    from dbagent.db.mongo import MongoStore
    from dbagent.db.sample_data import seed_sample_data

    store = MongoStore()
    try:
        store.connect()
        inserted = seed_sample_data(store, replace=replace)
    except PyMongoError as exc:
        logger.error("Seeding failed: %s", exc)
        return 1
    finally:
        store.disconnect()
    logger.info("Seeded %d sample documents", inserted)
    return 0


def _shell() -> None:
    from dbagent.client.cli import run_cli  # pylint: disable=import-outside-toplevel

    server = threading.Thread(
        target=run_api,
        name="dbagent-api",
        kwargs={
            "host": "127.0.0.1",
            "port": settings.API_PORT,
            "reload": False,
            "log_level": "warning",
        },
        daemon=True,
    )
    server.start()
    # The shell retries until the server thread accepts connections
    run_cli()


def main(argv: list[str] | None = None) -> None:
    """Parse *argv* (default ``sys.argv[1:]``), configure logging and run the chosen mode."""
    args = _build_parser().parse_args(sys.argv[1:] if argv is None else argv)

    settings.LOG_LEVEL = args.log_level
    _init_logging(settings.LOG_LEVEL)
    logger.info("Starting dbagent [%s mode]", args.mode)
    logger.debug("Settings: %s", settings.model_dump(exclude=_SECRET_SETTINGS))

    if args.mode == "seed":
        sys.exit(_seed(args.replace))
    elif args.mode == "cli":
        _shell()
    else:
        run_api(host="0.0.0.0", port=settings.API_PORT, reload=settings.DEBUG)


if __name__ == "__main__":
    main()
