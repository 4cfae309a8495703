# src/shipment_sync/config/env.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Tuple, Dict

from shipment_sync.models import EnvCfg, ShipDefaults

try:
    from dotenv import load_dotenv, find_dotenv  # type: ignore
except Exception as e:  # pragma: no cover
    raise RuntimeError(
        "Missing dependency 'python-dotenv'. Install it with:\n"
        "  pip install python-dotenv"
    ) from e


# --- Public contract ---------------------------------------------------------

class EnvError(RuntimeError):
    """Raised when required environment variables are missing or malformed."""


# Either a pre-issued token or API-user credentials must be present.
CREDENTIAL_KEYS: Tuple[str, ...] = (
    "SHIPROCKET_EMAIL",
    "SHIPROCKET_PASSWORD",
)
TOKEN_KEY = "SHIPROCKET_TOKEN"


def load_project_dotenv(start: Optional[Path] = None, *, override: bool = False) -> Path:
    """
    Load variables from the nearest `.env` file (searching upward from `start` or CWD).
    Does NOT override existing env vars unless `override=True`.
    Returns the resolved Path to the .env file if found; otherwise Path().
    """
    start_path = Path.cwd() if start is None else Path(start)

    dotenv_str = find_dotenv(filename=".env", usecwd=True)
    dotenv_path = Path(dotenv_str) if dotenv_str else Path()

    if not dotenv_str:
        for p in (start_path, *start_path.parents):
            candidate = p / ".env"
            if candidate.exists():
                dotenv_path = candidate
                break

    if not dotenv_path.exists() or dotenv_path.is_dir():
        return Path()

    load_dotenv(dotenv_path=dotenv_path, override=override)
    return dotenv_path.resolve()


def env(name: str, *, default=None, required: bool = False, cast=None):
    """
    Test-friendly accessor.

    - If `required=True` and var is missing, raise KeyError(name).
    - If `cast` is provided, apply it to the raw string and propagate cast errors.
    - Returns `default` when missing (or blank) and not required.
    """
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        if required:
            raise KeyError(name)
        return default

    if cast is not None:
        return cast(raw)
    return raw


def _as_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


# --- Main loader APIs --------------------------------------------------------

def load_env(
    dotenv_path: Optional[Path] = None,
    *,
    override: bool = False,
    strict: bool = False,
) -> Dict[str, str]:
    """
    Load env vars from a .env file into the process environment and return the
    key/value pairs python-dotenv parsed from that file.

    - If `dotenv_path` is provided, load exactly that file.
    - Otherwise, auto-discover the nearest .env via `load_project_dotenv`.
    - If `strict=True`, carrier credentials must be present afterwards.
    """
    from dotenv import dotenv_values

    loaded: Dict[str, str] = {}

    if dotenv_path:
        path = Path(dotenv_path)
        if path.exists():
            load_dotenv(dotenv_path=path, override=override)
            loaded = {k: v or "" for k, v in dotenv_values(path).items()}
    else:
        path = load_project_dotenv(override=override)
        if path and path.exists():
            loaded = {k: v or "" for k, v in dotenv_values(path).items()}

    if strict:
        _require_credentials()

    return loaded


def _require_credentials() -> None:
    if os.getenv(TOKEN_KEY):
        return
    missing = [k for k in CREDENTIAL_KEYS if not os.getenv(k)]
    if missing:
        raise EnvError(
            f"Missing required environment variable(s): {', '.join(missing)} "
            f"(or set {TOKEN_KEY})")


def get_app_env(dotenv_path: Path | str | None = ".env", *, strict: bool = True) -> EnvCfg:
    """
    Load application settings and return a typed config object.

    - `dotenv_path` may be a Path/str pointing to a specific .env file or None to
      disable file loading (useful for tests).
    - Existing process env wins over the file (CI/host settings first).
    - When `strict=True` carrier credentials are validated.
    """
    load_env(
        Path(dotenv_path) if dotenv_path else None,
        override=False,
        strict=strict,
    )

    defaults = EnvCfg()
    return EnvCfg(
        SHIPROCKET_BASE_URL=env("SHIPROCKET_BASE_URL",
                                default=defaults.SHIPROCKET_BASE_URL),
        SHIPROCKET_EMAIL=env("SHIPROCKET_EMAIL", default=""),
        SHIPROCKET_PASSWORD=env("SHIPROCKET_PASSWORD", default=""),
        SHIPROCKET_TOKEN=env(TOKEN_KEY, default=""),
        SHIPROCKET_PICKUP_LOCATION=env("SHIPROCKET_PICKUP_LOCATION", default=""),
        SHIPROCKET_DEFAULT_WEIGHT_KG=env(
            "SHIPROCKET_DEFAULT_WEIGHT_KG", default=defaults.SHIPROCKET_DEFAULT_WEIGHT_KG, cast=float),
        SHIPROCKET_DEFAULT_LENGTH_CM=env(
            "SHIPROCKET_DEFAULT_LENGTH_CM", default=defaults.SHIPROCKET_DEFAULT_LENGTH_CM, cast=float),
        SHIPROCKET_DEFAULT_BREADTH_CM=env(
            "SHIPROCKET_DEFAULT_BREADTH_CM", default=defaults.SHIPROCKET_DEFAULT_BREADTH_CM, cast=float),
        SHIPROCKET_DEFAULT_HEIGHT_CM=env(
            "SHIPROCKET_DEFAULT_HEIGHT_CM", default=defaults.SHIPROCKET_DEFAULT_HEIGHT_CM, cast=float),
        SHIPROCKET_SYNC_SECRET=env("SHIPROCKET_SYNC_SECRET", default=""),
        DATABASE_URL=env("DATABASE_URL", default=defaults.DATABASE_URL),
        EMAIL_HOST=env("EMAIL_HOST", default=""),
        EMAIL_PORT=env("EMAIL_PORT", default=defaults.EMAIL_PORT, cast=int),
        EMAIL_USER=env("EMAIL_USER", default=""),
        EMAIL_PASSWORD=env("EMAIL_PASSWORD", default=""),
        EMAIL_SECURE=env("EMAIL_SECURE", default=False, cast=_as_bool),
        EMAIL_FROM=env("EMAIL_FROM", default=""),
    )


def ship_defaults(cfg: EnvCfg) -> ShipDefaults:
    """Parcel defaults for shipment creation; the pickup location is mandatory."""
    if not cfg.SHIPROCKET_PICKUP_LOCATION:
        raise EnvError("Missing SHIPROCKET_PICKUP_LOCATION")
    return ShipDefaults(
        pickup_location=cfg.SHIPROCKET_PICKUP_LOCATION,
        weight=cfg.SHIPROCKET_DEFAULT_WEIGHT_KG,
        length=cfg.SHIPROCKET_DEFAULT_LENGTH_CM,
        breadth=cfg.SHIPROCKET_DEFAULT_BREADTH_CM,
        height=cfg.SHIPROCKET_DEFAULT_HEIGHT_CM,
    )


__all__ = [
    "EnvError",
    "CREDENTIAL_KEYS",
    "TOKEN_KEY",
    "load_project_dotenv",
    "load_env",
    "env",
    "get_app_env",
    "ship_defaults",
]
