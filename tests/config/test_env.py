# tests/config/test_env.py

import os
import pytest
from pathlib import Path

from shipment_sync.config.env import (
    EnvError,
    env as env_get,
    get_app_env,
    load_env,
    load_project_dotenv,
    ship_defaults,
)
from shipment_sync.models import EnvCfg

JWT = "eyJhbGciOi.eyJzdWIiOjF9.c2lnbmF0dXJl"


def _write_env_file(dirpath, text=""):
    f = dirpath / ".env"
    f.write_text(text)
    return f


def test_load_env_reads_file_and_sets_process_env_when_missing(tmp_path):
    f = _write_env_file(
        tmp_path,
        "SHIPROCKET_EMAIL=ops@example.com\nSHIPROCKET_PASSWORD=file_pw\n",
    )

    loaded = load_env(f, override=False, strict=True)

    assert loaded["SHIPROCKET_EMAIL"] == "ops@example.com"
    assert loaded["SHIPROCKET_PASSWORD"] == "file_pw"
    assert os.environ["SHIPROCKET_EMAIL"] == "ops@example.com"


def test_process_env_wins_over_dotenv(tmp_path, monkeypatch):
    f = _write_env_file(
        tmp_path,
        "SHIPROCKET_EMAIL=file@example.com\nSHIPROCKET_PASSWORD=file_pw\n",
    )
    monkeypatch.setenv("SHIPROCKET_EMAIL", "env@example.com")

    cfg = get_app_env(f)

    assert cfg.SHIPROCKET_EMAIL == "env@example.com"
    assert cfg.SHIPROCKET_PASSWORD == "file_pw"


def test_load_env_override_true_file_wins(tmp_path, monkeypatch):
    monkeypatch.setenv("SHIPROCKET_EMAIL", "env@example.com")
    f = _write_env_file(tmp_path, "SHIPROCKET_EMAIL=file@example.com\nSHIPROCKET_TOKEN=" + JWT + "\n")

    load_env(f, override=True, strict=True)

    assert os.environ["SHIPROCKET_EMAIL"] == "file@example.com"


def test_strict_accepts_token_instead_of_credentials(tmp_path):
    f = _write_env_file(tmp_path, f"SHIPROCKET_TOKEN={JWT}\n")
    cfg = get_app_env(f, strict=True)
    assert cfg.SHIPROCKET_TOKEN == JWT
    assert cfg.SHIPROCKET_EMAIL == ""


def test_strict_raises_when_credentials_missing(tmp_path):
    env_file = tmp_path / ".env"
    assert not env_file.exists()

    with pytest.raises(EnvError) as e:
        get_app_env(dotenv_path=env_file, strict=True)

    msg = str(e.value)
    assert "SHIPROCKET_EMAIL" in msg and "SHIPROCKET_TOKEN" in msg


def test_strict_error_is_a_runtime_error(tmp_path):
    with pytest.raises(RuntimeError):
        get_app_env(dotenv_path=tmp_path / "missing.env", strict=True)


def test_defaults_and_casts(tmp_path):
    f = _write_env_file(
        tmp_path,
        "SHIPROCKET_PICKUP_LOCATION=Primary\n"
        "SHIPROCKET_DEFAULT_WEIGHT_KG=0.5\n"
        "EMAIL_PORT=465\n"
        "EMAIL_SECURE=true\n"
        "SHIPROCKET_DEFAULT_HEIGHT_CM=   \n",
    )
    cfg = get_app_env(f, strict=False)

    assert cfg.SHIPROCKET_BASE_URL == "https://apiv2.shiprocket.in"
    assert cfg.SHIPROCKET_DEFAULT_WEIGHT_KG == 0.5
    assert cfg.SHIPROCKET_DEFAULT_LENGTH_CM == 18.0
    # blank counts as unset
    assert cfg.SHIPROCKET_DEFAULT_HEIGHT_CM == 3.0
    assert cfg.EMAIL_PORT == 465
    assert cfg.EMAIL_SECURE is True
    assert cfg.DATABASE_URL == "sqlite:///shipments.db"


def test_bad_number_propagates_cast_error(tmp_path):
    f = _write_env_file(tmp_path, "EMAIL_PORT=smtp\n")
    with pytest.raises(ValueError):
        get_app_env(f, strict=False)


def test_get_app_env_without_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SHIPROCKET_SYNC_SECRET", "s3")
    cfg = get_app_env(None, strict=False)
    assert cfg.SHIPROCKET_SYNC_SECRET == "s3"


def test_env_required_flag_raises(monkeypatch):
    monkeypatch.delenv("SOME_MISSING_VAR", raising=False)
    with pytest.raises(KeyError):
        env_get("SOME_MISSING_VAR", required=True)


def test_env_default_is_used_when_missing(monkeypatch):
    monkeypatch.delenv("OPTIONAL_VAR", raising=False)
    assert env_get("OPTIONAL_VAR", default="fallback") == "fallback"


def test_ship_defaults_need_pickup_location():
    with pytest.raises(EnvError):
        ship_defaults(EnvCfg())
    d = ship_defaults(EnvCfg(SHIPROCKET_PICKUP_LOCATION="Primary"))
    assert (d.pickup_location, d.weight, d.length, d.breadth, d.height) == ("Primary", 0.3, 18.0, 10.0, 3.0)


def test_project_dotenv_discovered_upwards(tmp_path, monkeypatch):
    _write_env_file(tmp_path, "SHIPROCKET_PICKUP_LOCATION=Upstairs\n")
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    monkeypatch.chdir(nested)

    found = load_project_dotenv(start=nested)

    assert found == (tmp_path / ".env").resolve()
    assert os.environ["SHIPROCKET_PICKUP_LOCATION"] == "Upstairs"


def test_project_dotenv_absent_returns_empty_path(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert load_project_dotenv(start=tmp_path) == Path()
