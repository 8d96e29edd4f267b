"""``perch routes`` — print the compiled route table in match order."""

import argparse
import sys

from perch.cli._resolve import resolve_app


def run_routes(args: argparse.Namespace) -> None:
    """Print NAME, METHODS, PATH and constraints for every route."""
    try:
        app = resolve_app(args.app)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    routes = app.routes()
    if not routes:
        print("No routes registered.")
        return

    rows: list[tuple[str, str, str, str]] = []
    for route in routes:
        constraints = " ".join(f"{k}={v}" for k, v in route.requirements.items())
        rows.append((route.name, ", ".join(sorted(route.methods)), route.path, constraints))

    width_name = max(4, *(len(r[0]) for r in rows))
    width_methods = max(7, *(len(r[1]) for r in rows))
    width_path = max(4, *(len(r[2]) for r in rows))

    fmt = f"{{:<{width_name}}}  {{:<{width_methods}}}  {{:<{width_path}}}  {{}}"
    print(fmt.format("NAME", "METHODS", "PATH", "CONSTRAINTS").rstrip())
    print("-" * min(width_name + width_methods + width_path + 6 + 11, 80))
    for row in rows:
        print(fmt.format(*row).rstrip())
