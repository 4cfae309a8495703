import logging

from shipment_sync.config.logging_config import get_logger, truncate


def test_get_logger_idempotent_no_duplicate_handlers(tmp_path):
    log_path = tmp_path / "run.log"
    logger = get_logger("shipment_sync.test.idem", level="DEBUG", log_file=log_path, console=False)
    logger2 = get_logger("shipment_sync.test.idem", level="DEBUG", log_file=log_path, console=False)

    assert logger is logger2
    assert len(logger.handlers) == 1


def test_get_logger_adds_console_then_file_once(tmp_path):
    name = "shipment_sync.test.multi"
    get_logger(name, console=True)
    logger = get_logger(name, console=True, log_file=tmp_path / "multi.log")
    get_logger(name, console=True, log_file=tmp_path / "multi.log")

    assert len(logger.handlers) == 2


def test_get_logger_writes_to_file(tmp_path):
    log_file = tmp_path / "logs" / "app.log"
    logger = get_logger("shipment_sync.test.file", level="INFO", log_file=log_file, console=False)
    logger.info("shipment synced")

    content = log_file.read_text(encoding="utf-8")
    assert "shipment synced" in content
    assert "| INFO | shipment_sync.test.file |" in content


def test_get_logger_respects_level_env(monkeypatch, tmp_path):
    monkeypatch.setenv("LOG_LEVEL", "ERROR")
    log_file = tmp_path / "lvl.log"
    logger = get_logger("shipment_sync.test.level", log_file=log_file, console=False)

    logger.info("should NOT appear")
    logger.error("should appear")

    text = log_file.read_text(encoding="utf-8")
    assert "should appear" in text
    assert "should NOT appear" not in text


def test_noisy_libraries_quiet_unless_debugging():
    get_logger("shipment_sync.test.noisy", level="INFO", console=False)
    assert logging.getLogger("urllib3").level == logging.WARNING
    get_logger("shipment_sync.test.noisy", level="DEBUG", console=False)
    assert logging.getLogger("urllib3").level == logging.DEBUG
    get_logger("shipment_sync.test.noisy", level="INFO", console=False)


def test_truncate():
    assert truncate("abc", 5) == "abc"
    assert truncate("abcdefgh", 3) == "abc..."
    assert truncate(None) is None
