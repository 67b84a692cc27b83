from __future__ import annotations

from typer.testing import CliRunner

from feed_archive.cli import app

runner = CliRunner()


def invoke(tmp_path, *args: str):
    return runner.invoke(
        app,
        ["--data-dir", str(tmp_path / "data"), "--log-level", "ERROR", "--no-log-file", *args],
    )


def test_private_feed_is_rejected_with_payload(tmp_path):
    result = invoke(tmp_path, "add", "http://127.0.0.1/feed")

    assert result.exit_code == 1
    assert '"ok": false' in result.stdout
    assert '"kind": "FeedRejected"' in result.stdout
    assert '"url": "http://127.0.0.1/feed"' in result.stdout


def test_empty_feed_set_lists_nothing(tmp_path):
    result = invoke(tmp_path, "feeds")

    assert result.exit_code == 0
    assert "127.0.0.1" not in result.stdout
    assert (tmp_path / "data" / "feed_archive.db").exists()


def test_export_writes_review_file(tmp_path):
    target = tmp_path / "out" / "review.md"

    result = invoke(tmp_path, "export", "--days", "3", "--output", str(target))

    assert result.exit_code == 0
    text = target.read_text(encoding="utf-8")
    assert "days: 3" in text
    assert "| Time | Type | Title | Link | Details |" in text


def test_note_for_unknown_article_fails(tmp_path):
    result = invoke(tmp_path, "note", "0" * 64, "--content", "orphan")

    assert result.exit_code == 1
    assert '"kind": "StorageError"' in result.stdout
