from __future__ import annotations

from pathlib import Path

from feed_archive.config import AppConfig, load_config


def test_defaults_without_file():
    cfg = load_config(None, environ={})

    assert cfg.queue.concurrency == 4
    assert cfg.queue.interval_cap == 10
    assert cfg.queue.interval_ms == 1000
    assert cfg.queue.retries == 3
    assert cfg.queue.base_delay_ms == 800
    assert cfg.security.allow_private_networks is False
    assert cfg.storage.database_path == Path("data") / "feed_archive.db"


def test_yaml_sections_merge_over_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "queue:\n  concurrency: 2\nstorage:\n  data_dir: /srv/archive\n  notes_dir: /srv/notes\nunknown:\n  x: 1\n",
        encoding="utf-8",
    )

    cfg = load_config(str(path), environ={})

    assert cfg.queue.concurrency == 2
    assert cfg.queue.interval_cap == 10
    assert cfg.storage.articles_path == Path("/srv/archive/articles")
    assert cfg.storage.notes_path == Path("/srv/notes")
    assert not hasattr(cfg, "unknown")


def test_empty_yaml_gives_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")

    assert load_config(str(path), environ={}) == AppConfig()


def test_environment_overrides_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("queue:\n  concurrency: 2\n", encoding="utf-8")

    cfg = load_config(
        str(path),
        environ={
            "FEED_ARCHIVE_FETCH_CONCURRENCY": "8",
            "FEED_ARCHIVE_FETCH_INTERVAL_CAP": "20",
            "FEED_ARCHIVE_FETCH_INTERVAL_MS": "",
            "FEED_ARCHIVE_ALLOW_PRIVATE_NETWORKS": "yes",
            "FEED_ARCHIVE_DATA_DIR": "/tmp/fa",
        },
    )

    assert cfg.queue.concurrency == 8
    assert cfg.queue.interval_cap == 20
    assert cfg.queue.interval_ms == 1000
    assert cfg.security.allow_private_networks is True
    assert cfg.storage.database_url == "sqlite+aiosqlite:////tmp/fa/feed_archive.db"
