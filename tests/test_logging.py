import json
import logging
import sys

from rich.logging import RichHandler

from optbook.logger import JSONFormatter, log_notebook_error, setup_logging


def test_plain_console_handler_when_not_a_tty():
    setup_logging(level="WARNING", use_rich=False)
    root = logging.getLogger()
    assert root.level == logging.WARNING
    assert len(root.handlers) == 1
    assert not isinstance(root.handlers[0], RichHandler)


def test_rich_console_handler():
    setup_logging(use_rich=True)
    assert isinstance(logging.getLogger().handlers[0], RichHandler)


def test_json_log_file(tmp_path):
    log_file = tmp_path / "logs" / "run.jsonl"
    setup_logging(level="INFO", log_file=log_file, log_format="json", use_rich=False)
    log_notebook_error(logging.getLogger("optbook.test"), "chapter_a/x.ipynb", "boom", group="CH11")
    for handler in logging.getLogger().handlers:
        handler.flush()
    entry = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
    assert entry["level"] == "ERROR"
    assert entry["logger"] == "optbook.test"
    assert entry["message"] == "Failed: [CH11] chapter_a/x.ipynb - boom"


def test_json_formatter_includes_exception():
    try:
        raise RuntimeError("kernel died")
    except RuntimeError:
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())
    entry = json.loads(JSONFormatter().format(record))
    assert "RuntimeError: kernel died" in entry["exception"]
