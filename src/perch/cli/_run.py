"""``perch run`` — serve an app with uvicorn."""

import argparse
import logging
import sys

from perch.cli._resolve import resolve_app


def run_server(args: argparse.Namespace) -> None:
    """Resolve ``args.app``, configure logging, and serve it.

    CLI flags override the app's ``host``, ``port`` and ``log_level``.
    """
    try:
        app = resolve_app(args.app)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    level = (args.log_level or app.config.log_level).upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )
    app.run(host=args.host, port=args.port, log_level=args.log_level)
