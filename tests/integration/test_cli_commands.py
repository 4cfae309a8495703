from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
import pytest

from shipment_sync import cli
from shipment_sync.api.shiprocket import CREATE_ORDER_PATH
from shipment_sync.io.db import init_models, make_engine, make_session_factory
from shipment_sync.models import Order


@pytest.fixture
def db_url(tmp_path: Path, order_data) -> str:
    url = f"sqlite:///{tmp_path / 'shop.db'}"
    engine = make_engine(url)
    init_models(engine)
    session = make_session_factory(engine)()
    session.add(Order(**order_data(42)))
    session.commit()
    session.close()
    engine.dispose()
    return url


@pytest.fixture
def replay_file(tmp_path: Path) -> Path:
    entries = [
        {"method": "POST", "path": CREATE_ORDER_PATH,
         "response": {"order_id": 555, "shipment_id": 9001, "status": "NEW"}},
        {"method": "GET", "path": "/v1/external/courier/track/shipment/9001",
         "response": {"data": {"awb_code": "AWB42", "courier_name": "Delhivery"}}},
    ]
    f = tmp_path / "replay.json"
    f.write_text(json.dumps(entries), encoding="utf-8")
    return f


def run_cli(tmp_path: Path, db_url: str, *args: str) -> int:
    return cli.main([
        "--no-console",
        "--env-file", str(tmp_path / "absent.env"),
        "--database-url", db_url,
        *args,
    ])


def test_create_show_and_sync_batch_in_replay(tmp_path, db_url, replay_file, monkeypatch, capsys):
    monkeypatch.setenv("SHIPROCKET_PICKUP_LOCATION", "Primary")
    replay = ["--replay", str(replay_file)]

    assert run_cli(tmp_path, db_url, *replay, "create", "42") == 0
    created = json.loads(capsys.readouterr().out)
    assert created["shipment"]["carrier_shipment_id"] == "9001"
    assert created["shipment"]["status"] == "created"

    report = tmp_path / "outcomes.xlsx"
    assert run_cli(tmp_path, db_url, *replay, "sync-batch", "--limit", "5", "--report", str(report)) == 0
    outcomes = json.loads(capsys.readouterr().out)
    assert [(o["order_id"], o["awb"], o["ok"]) for o in outcomes] == [(42, "AWB42", True)]

    df = pd.read_excel(report, sheet_name="Outcomes", engine="openpyxl", dtype={"awb": str})
    assert df.loc[0, "awb"] == "AWB42"
    assert df.loc[0, "status"] == "awb_assigned"

    assert run_cli(tmp_path, db_url, *replay, "show", "42", "--public") == 0
    public = json.loads(capsys.readouterr().out)
    assert public["awb"] == "AWB42"
    assert "raw_response" not in public


def test_domain_error_exits_1_with_payload_on_stderr(tmp_path, db_url, replay_file, capsys):
    assert run_cli(tmp_path, db_url, "--replay", str(replay_file), "show", "43") == 1
    err = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
    assert err["kind"] == "not_found"


def test_create_without_pickup_location_exits_1(tmp_path, db_url, replay_file):
    assert run_cli(tmp_path, db_url, "--replay", str(replay_file), "create", "42") == 1


def test_missing_replay_file_exits_2(tmp_path, db_url):
    assert run_cli(tmp_path, db_url, "--replay", str(tmp_path / "nope.json"), "sync", "42") == 2


def test_no_credentials_without_replay_exits_2(tmp_path, db_url):
    assert run_cli(tmp_path, db_url, "sync", "42") == 2


def test_strict_env_is_relaxed_in_replay(tmp_path, db_url, replay_file):
    assert run_cli(tmp_path, db_url, "--strict-env", "sync-batch") == 2
    assert run_cli(tmp_path, db_url, "--strict-env", "--replay", str(replay_file), "sync-batch") == 0


def test_failed_batch_item_exits_1(tmp_path, db_url, monkeypatch):
    monkeypatch.setenv("SHIPROCKET_PICKUP_LOCATION", "Primary")
    replay = tmp_path / "create_only.json"
    replay.write_text(json.dumps([
        {"method": "POST", "path": CREATE_ORDER_PATH, "response": {"shipment_id": 9001}},
    ]), encoding="utf-8")

    assert run_cli(tmp_path, db_url, "--replay", str(replay), "create", "42") == 0
    assert run_cli(tmp_path, db_url, "--replay", str(replay), "sync-batch") == 1
