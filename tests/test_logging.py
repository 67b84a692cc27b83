from __future__ import annotations

import json
import logging

from feed_archive.config import LoggingConfig
from feed_archive.utils.logging import JsonlFormatter, log_event, setup_logging, truncate_text


def test_jsonl_formatter_includes_extras():
    record = logging.LogRecord("feed_archive.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    record.event = "feed_added"
    record.url = "https://example.com/rss"

    payload = json.loads(JsonlFormatter().format(record))

    assert payload["message"] == "hello world"
    assert payload["level"] == "INFO"
    assert payload["event"] == "feed_added"
    assert payload["url"] == "https://example.com/rss"
    assert "lineno" not in payload


def test_setup_logging_writes_jsonl_file(tmp_path):
    cfg = LoggingConfig(level="DEBUG", console=False, file=True, format="jsonl", filename="run.jsonl")
    logger = setup_logging(cfg, tmp_path)

    log_event(logging.getLogger("feed_archive.fetch.queue"), "Retrying", event="fetch_retry", attempt=1)
    for handler in logger.handlers:
        handler.flush()

    lines = (tmp_path / "run.jsonl").read_text(encoding="utf-8").splitlines()
    record = json.loads(lines[-1])
    assert record["event"] == "fetch_retry"
    assert record["attempt"] == 1
    assert record["logger"] == "feed_archive.fetch.queue"

    for handler in logger.handlers:
        handler.close()
    logger.handlers = []
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


def test_log_event_accepts_missing_logger():
    log_event(None, "ignored", event="x")


def test_truncate_text():
    assert truncate_text("short") == "short"
    assert truncate_text("x" * 10, max_chars=4) == "xxxx...(truncated)"
