"""Application configuration.

AppConfig is a frozen dataclass — immutable after creation, IDE-autocompletable,
no string-key dict lookups.

Configuration can also be cascaded from TOML files: ``load_config()`` reads
``<dir>/application.toml`` from each directory in turn, so a deployment
directory listed last overrides the defaults shipped with the app.
"""

import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, get_args, get_type_hints

from perch.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(debug=True, port=3000, default_limit=50)
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    log_level: str = "info"

    # Request handling
    trust_proxy: bool = False  # Honour X-Forwarded-Proto / X-Forwarded-Host for base_url
    max_content_length: int = 16 * 1024 * 1024  # 16 MB

    # Controllers
    controller_namespace: str | None = None  # Module scanned for *Controller classes at startup
    controller_suffix: str = "Controller"

    # Envelope
    message_key: str = "message"  # Name of the human-readable message field

    # Listing defaults (offset/limit/order_by/direction query params)
    default_order_by: str = "id"
    default_direction: str = "ASC"
    default_limit: int = 30
    max_limit: int = 100


def _field_types() -> dict[str, tuple[type, ...]]:
    """Declared type of each ``AppConfig`` field, ``None`` stripped from unions."""
    types: dict[str, tuple[type, ...]] = {}
    for key, hint in get_type_hints(AppConfig).items():
        types[key] = tuple(t for t in get_args(hint) if t is not type(None)) or (hint,)
    return types


def _check_type(key: str, value: Any, expected: tuple[type, ...], path: Path) -> None:
    # bool subclasses int, so ``port = true`` would otherwise pass as an int.
    if isinstance(value, expected) and (bool in expected or not isinstance(value, bool)):
        return
    names = " | ".join(t.__name__ for t in expected)
    msg = f"Configuration key {key!r} in {str(path)!r} expects {names}, got {type(value).__name__}"
    raise ConfigurationError(msg)


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid configuration file {str(path)!r}: {exc}"
        raise ConfigurationError(msg) from exc


def load_config(
    *dirs: str | Path,
    name: str = "application",
    base: AppConfig | None = None,
) -> AppConfig:
    """Build an ``AppConfig`` from ``<dir>/<name>.toml`` files.

    Directories are read in order; keys in later files override earlier
    ones. Missing directories and files are skipped, so optional override
    locations can always be listed.

    Raises ``ConfigurationError`` for unknown keys or values whose type does
    not match the field's declared type.
    """
    config = base or AppConfig()
    known = _field_types()

    for directory in dirs:
        path = Path(directory) / f"{name}.toml"
        if not path.is_file():
            continue
        values = _read_toml(path)

        unknown = sorted(set(values) - set(known))
        if unknown:
            msg = f"Unknown configuration keys in {str(path)!r}: {', '.join(unknown)}"
            raise ConfigurationError(msg)

        for key, value in values.items():
            _check_type(key, value, known[key], path)

        config = replace(config, **values)

    return config
