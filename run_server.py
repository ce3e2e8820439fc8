"""Run the TicketFlow scheduler and HTTP API."""
from __future__ import annotations

import argparse
import os

import uvicorn

from ticketflow.api.app import create_app
from ticketflow.bootstrap import build_application
from ticketflow.config import configure, load_settings
from ticketflow.log import LOG_LEVELS, configure_logging


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the TicketFlow server")
    parser.add_argument(
        "--config",
        default=os.getenv("TICKETFLOW_CONFIG"),
        help="Path to the YAML settings file (env: TICKETFLOW_CONFIG).",
    )
    parser.add_argument("--host", default=os.getenv("TICKETFLOW_HOST", "0.0.0.0"))
    parser.add_argument(
        "--port", type=int, default=int(os.getenv("TICKETFLOW_PORT", "8080"))
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("TICKETFLOW_LOG_LEVEL", "INFO").upper(),
        type=str.upper,
        choices=LOG_LEVELS,
        help="Logging level (env: TICKETFLOW_LOG_LEVEL).",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    # Defaults from the environment skip the choices check.
    try:
        configure_logging(args.log_level)
    except ValueError as e:
        parser.error(str(e))

    settings = load_settings(args.config)
    configure(settings)
    application = build_application(settings)
    app = create_app(
        application.scheduler,
        application.jira,
        settings,
        wiki=application.confluence,
        lifecycle=application.lifecycle,
    )
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
