from __future__ import annotations

from pathlib import Path

import pytest

from showbook.config import DEFAULT_API_BASE_URL, ArtistConfig, default_config, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch) -> None:
    for name in ("PHISHNET_API_KEY", "SHOWBOOK_COLLECTIONS", "SHOWBOOK_LIBRARY_PATH"):
        monkeypatch.delenv(name, raising=False)


def write_config(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "showbook.yaml"
    path.write_text(body, encoding="utf-8")
    return path


def test_defaults() -> None:
    settings = default_config().settings

    assert settings.artist == ArtistConfig()
    assert settings.phishnet.api_key is None
    assert settings.phishnet.base_url == DEFAULT_API_BASE_URL
    assert settings.phishnet.min_interval == 1.0
    assert settings.parser.confidence_threshold == 0.3
    assert settings.metadata.max_reviews == 50
    assert settings.metadata.run_window_days == 7
    assert settings.library.backend == "sqlite"
    assert settings.collections.enabled is True


def test_load_full_config(tmp_path) -> None:
    path = write_config(
        tmp_path,
        """
settings:
  artist:
    name: Goose
    filename_prefix: gs
    founding_year: 2014
  phishnet:
    api_key: abc123
    base_url: https://api.example.net/v5
    timeout: 10
    min_interval: 0.5
  parser:
    confidence_threshold: 0.5
  metadata:
    include_reviews: false
    max_reviews: 0
    run_window_days: 3
  library:
    backend: SQLite
    path: /tmp/showbook/library.db
  collections:
    enabled: false
    max_workers: 0
""",
    )

    settings = load_config(path).settings

    assert settings.artist == ArtistConfig(name="Goose", slug="goose", filename_prefix="gs", founding_year=2014)
    assert settings.phishnet.api_key == "abc123"
    assert settings.phishnet.base_url == "https://api.example.net/v5/"
    assert settings.phishnet.timeout == 10.0
    assert settings.phishnet.min_interval == 0.5
    assert settings.parser.confidence_threshold == 0.5
    assert settings.metadata.include_reviews is False
    assert settings.metadata.max_reviews == 50
    assert settings.metadata.run_window_days == 3
    assert settings.library.backend == "sqlite"
    assert settings.library.path == Path("/tmp/showbook/library.db")
    assert settings.collections.enabled is False
    assert settings.collections.max_workers == 1


def test_environment_overrides(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("PHISHNET_API_KEY", "from-env")
    monkeypatch.setenv("SHOWBOOK_COLLECTIONS", "off")
    monkeypatch.setenv("SHOWBOOK_LIBRARY_PATH", str(tmp_path / "env.db"))
    path = write_config(tmp_path, "settings:\n  phishnet:\n    api_key: from-file\n")

    settings = load_config(path).settings

    assert settings.phishnet.api_key == "from-env"
    assert settings.collections.enabled is False
    assert settings.library.path == tmp_path / "env.db"


def test_api_key_from_environment_variable_reference(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("MY_PHISHNET_KEY", "expanded")
    path = write_config(tmp_path, "settings:\n  phishnet:\n    api_key: ${MY_PHISHNET_KEY}\n")

    assert load_config(path).settings.phishnet.api_key == "expanded"


@pytest.mark.parametrize(
    "body",
    [
        "settings:\n  phishnet:\n    base_url: ftp://api.phish.net\n",
        "settings:\n  phishnet:\n    timeout: soon\n",
        "settings:\n  phishnet:\n    min_interval: -1\n",
        "settings:\n  parser:\n    confidence_threshold: -0.1\n",
        "settings:\n  metadata:\n    run_window_days: 0\n",
        "settings:\n  artist:\n    founding_year: 1492\n",
        "settings:\n  artist:\n    founding_year: nineteen\n",
        "settings:\n  collections: [1, 2]\n",
        "settings:\n  collections:\n    max_workers: many\n",
    ],
)
def test_invalid_values_rejected(tmp_path, body) -> None:
    with pytest.raises(ValueError):
        load_config(write_config(tmp_path, body))


def test_non_mapping_document_rejected(tmp_path) -> None:
    with pytest.raises(ValueError):
        load_config(write_config(tmp_path, "- just\n- a list\n"))


def test_missing_settings_section_uses_defaults(tmp_path) -> None:
    settings = load_config(write_config(tmp_path, "other: value\n")).settings

    assert settings.artist.name == "Phish"
