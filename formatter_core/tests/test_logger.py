import json
import logging
import sys
import threading

from formatter_core.domain.exceptions import ErrorCode, NetworkError
from formatter_core.infrastructure.logging import logger as logger_module
from formatter_core.infrastructure.logging.logger import (
    JsonFormatter,
    error_log_path,
    install_excepthooks,
    log_error,
    logger,
    setup_logger,
)


def _lines(log_dir):
    return [json.loads(line) for line in error_log_path(log_dir).read_text(encoding="utf-8").splitlines()]


def test_log_error_appends_json_lines(tmp_path):
    log_error(NetworkError("first", {"host": "localhost"}), tmp_path)
    log_error(ValueError("second"), tmp_path)

    first, second = _lines(tmp_path)
    assert first["code"] == "network-error"
    assert first["message"] == "first"
    assert first["details"] == {"host": "localhost"}
    assert first["timestamp"].endswith("Z")
    assert second["code"] == "unknown"
    assert "stack" in second["context"]


def test_error_log_file_is_named_by_date(tmp_path):
    log_error(NetworkError(), tmp_path)
    path = error_log_path(tmp_path)
    assert path.name.startswith("error-") and path.name.endswith(".log")
    assert path.exists()


def test_failure_to_write_is_swallowed(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")
    # 日志目录是一个普通文件，写入必然失败
    log_error(NetworkError(), blocker)
    assert blocker.read_text(encoding="utf-8") == "x"


def test_excepthooks_log_uncaught_errors(tmp_path, monkeypatch):
    seen = []
    monkeypatch.setattr(sys, "excepthook", lambda *args: seen.append(args[0]))
    monkeypatch.setattr(threading, "excepthook", threading.excepthook)
    install_excepthooks(tmp_path)

    try:
        raise KeyError("boom")
    except KeyError as e:
        sys.excepthook(type(e), e, e.__traceback__)
    assert seen == [KeyError]

    worker = threading.Thread(target=lambda: 1 / 0)
    worker.start()
    worker.join()

    kinds = [entry["context"]["kind"] for entry in _lines(tmp_path)]
    assert kinds == ["uncaught-exception", "unhandled-thread-exception"]
    assert _lines(tmp_path)[-1]["code"] == ErrorCode.UNKNOWN.value


def test_setup_logger_is_idempotent(tmp_path):
    before = list(logger.handlers)
    try:
        setup_logger(tmp_path, redact_content=False)
        setup_logger(tmp_path, redact_content=False)
        added = [h for h in logger.handlers if h not in before]
        assert len(added) == 1
        logger.info("hello", extra={"extra": {"command": "app:getVersion"}})
        added[0].flush()
        entry = json.loads((tmp_path / "app.log").read_text(encoding="utf-8").splitlines()[-1])
        assert entry["msg"] == "hello"
        assert entry["command"] == "app:getVersion"
    finally:
        for h in logger.handlers[:]:
            if h not in before:
                logger.removeHandler(h)
                h.close()


def test_json_formatter_redacts_long_messages():
    record = logging.LogRecord("formatter_core", logging.INFO, __file__, 1, "x" * 200, None, None)
    payload = json.loads(JsonFormatter(redact_content=True).format(record))
    assert len(payload["msg"]) == 64
    assert logger_module.logger.name == "formatter_core"


def test_same_error_is_logged_once(tmp_path):
    err = NetworkError("offline")
    log_error(err, tmp_path)
    log_error(err, tmp_path)
    assert len(_lines(tmp_path)) == 1
    assert "logged" not in _lines(tmp_path)[0]["context"]
