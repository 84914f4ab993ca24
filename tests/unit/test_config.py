"""Unit tests for settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from taskchain.config import Settings, clear_settings_cache, get_settings
from taskchain.config.settings import load_config_file
from taskchain.core import Chain


@pytest.fixture(autouse=True)
def _clear_cache():
    clear_settings_cache()
    yield
    clear_settings_cache()


def test_defaults() -> None:
    settings = Settings()

    assert settings.http.timeout_seconds == 30.0
    assert settings.http.follow_redirects is True
    assert settings.logging.level == "INFO"
    assert settings.logging.log_to_file is False
    assert settings.chain.name == "chain"
    assert settings.chain.history_limit == 100


def test_yaml_file_with_env_references(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHAIN_NAME", "importer")
    config = tmp_path / "config.yaml"
    config.write_text(
        "http:\n"
        "  timeout_seconds: 5\n"
        "logging:\n"
        "  level: DEBUG\n"
        "chain:\n"
        "  name: ${CHAIN_NAME}\n",
        encoding="utf-8",
    )

    settings = get_settings(str(config))

    assert settings.http.timeout_seconds == 5
    assert settings.logging.level == "DEBUG"
    assert settings.chain.name == "importer"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TASKCHAIN_HTTP__TIMEOUT_SECONDS", "12.5")
    monkeypatch.setenv("TASKCHAIN_CHAIN__NAME", "nightly")

    settings = Settings()

    assert settings.http.timeout_seconds == 12.5
    assert settings.chain.name == "nightly"


def test_missing_file_yields_empty_config(tmp_path: Path) -> None:
    assert load_config_file(tmp_path / "absent.yaml") == {}


def test_get_settings_is_cached(tmp_path: Path) -> None:
    config = tmp_path / "config.yaml"
    config.write_text("chain:\n  name: cached\n", encoding="utf-8")

    assert get_settings(str(config)) is get_settings(str(config))


def test_chain_without_settings_uses_loaded_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "config.yaml").write_text("chain:\n  name: from-file\n  history_limit: 5\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    chain = Chain()

    assert chain.name == "from-file"
    assert chain.settings is get_settings()
    assert chain.settings.chain.history_limit == 5
