# src/shipment_sync/cli.py
from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any

from .config.env import EnvError, get_app_env
from .config.logging_config import get_logger
from .errors import ShipmentError
from .io.db import init_models, make_engine, make_session_factory
from .service import Actor, build_service

# Operators running the CLI act with full admin rights.
CLI_ACTOR = Actor(user_id="cli", role="admin")

SINGLE_COMMANDS = ("create", "assign-awb", "label", "cancel", "track", "sync", "show")
BATCH_COMMANDS = ("sync-batch", "track-batch")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="shipment-sync",
        description="Create, mutate and reconcile Shiprocket shipments for store orders.",
    )
    p.add_argument("--no-console", action="store_true",
                   help="Disable console logging (file logging remains).")
    p.add_argument("--log-level", default="INFO",
                   help="Logging level (DEBUG, INFO, WARNING, ERROR). Default: INFO")
    p.add_argument("--log-file", type=Path, default=None,
                   help="Also log to this file (rotating).")
    p.add_argument("--env-file", type=Path, default=Path(".env"),
                   help="dotenv file to load. Default: ./.env")
    p.add_argument("--strict-env", action="store_true",
                   help="Require SHIPROCKET_TOKEN or SHIPROCKET_EMAIL/PASSWORD; otherwise exit 2.")
    p.add_argument("--database-url", default=None,
                   help="SQLAlchemy URL; overrides DATABASE_URL.")
    p.add_argument("--replay", type=Path, default=None,
                   help="JSON file of recorded carrier exchanges to serve instead of the live API.")

    sub = p.add_subparsers(dest="command", required=True)
    for name in SINGLE_COMMANDS:
        sp = sub.add_parser(name)
        sp.add_argument("order_id", type=int)
        if name == "assign-awb":
            sp.add_argument("--courier-id", default=None, help="Request a specific courier.")
        if name == "show":
            sp.add_argument("--public", action="store_true", help="Customer-facing projection.")

    for name in BATCH_COMMANDS:
        sp = sub.add_parser(name)
        sp.add_argument("--limit", type=int, default=20, help="Max shipments (1..50). Default: 20")
        sp.add_argument("--report", type=Path, default=None,
                        help="Write per-item outcomes to .xlsx or .csv.")
    return p


def _print(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logger = get_logger(
        "shipment_sync",
        level=args.log_level,
        console=not args.no_console,
        log_file=args.log_file,
    )
    logger.debug("Logger initialized.")

    # Replays never talk to the carrier, so credentials are optional there.
    try:
        env_cfg = get_app_env(args.env_file, strict=args.strict_env and args.replay is None)
    except (EnvError, ValueError) as e:
        logger.error("Environment error: %s", e)
        return 2

    client = None
    if args.replay is not None:
        from .api.client import ReplayShiprocketClient
        try:
            client = ReplayShiprocketClient.from_file(args.replay)
        except ValueError as e:
            logger.error("Replay error: %s", e)
            return 2
        logger.info("Replay mode enabled: %s", args.replay)

    engine = make_engine(args.database_url or env_cfg.DATABASE_URL)
    init_models(engine)
    session = make_session_factory(engine)()

    try:
        try:
            service = build_service(env_cfg, session, client=client)
        except EnvError as e:
            logger.error("Environment error: %s", e)
            return 2
        return _dispatch(args, service, logger)
    finally:
        session.close()
        engine.dispose()


def _dispatch(args: argparse.Namespace, service, logger) -> int:
    cmd = args.command
    try:
        if cmd in BATCH_COMMANDS:
            run = service.sync_batch if cmd == "sync-batch" else service.track_batch
            outcomes = run(CLI_ACTOR, args.limit)
            _print([o.to_dict() for o in outcomes])
            if args.report is not None:
                from .pipelines.report import write_report
                path = write_report(outcomes, args.report)
                logger.info("Report written: %s", path)
            return 0 if all(o.ok for o in outcomes) else 1

        if cmd == "show":
            view = service.public_status(args.order_id) if args.public else service.show(CLI_ACTOR, args.order_id)
            _print(view)
            return 0

        if cmd == "create":
            result = service.create(CLI_ACTOR, args.order_id)
        elif cmd == "assign-awb":
            result = service.assign_awb(CLI_ACTOR, args.order_id, args.courier_id)
        elif cmd == "label":
            result = service.generate_label(CLI_ACTOR, args.order_id)
        elif cmd == "cancel":
            result = service.cancel(CLI_ACTOR, args.order_id)
        elif cmd == "track":
            result = service.track(CLI_ACTOR, args.order_id)
        else:
            result = service.sync(CLI_ACTOR, args.order_id)
    except EnvError as e:
        logger.error("Environment error: %s", e)
        return 2
    except ShipmentError as e:
        logger.error("%s failed (%s): %s", cmd, e.kind, e.message)
        print(json.dumps(e.to_payload(admin=True), default=str), file=sys.stderr)
        return 1

    _print(asdict(result))
    logger.info("Done.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
