from __future__ import annotations

import pytest

from statshub.config import HubConfig
from statshub.exceptions import HubConfigError


def test_from_env_reads_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ANALYTICS_TOKEN", " secret ")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("STATSHUB_CHECKPOINT_INTERVAL", "15")
    monkeypatch.setenv("STATSHUB_HISTORY_LIMIT", "200")
    monkeypatch.setenv("STATSHUB_LOG_PAYLOADS", "yes")

    config = HubConfig.from_env()

    assert config.token == "secret"
    assert config.port == 8080
    assert config.checkpoint_interval == 15.0
    assert config.history_limit == 200
    assert config.persisted_history_limit == 50
    assert config.log_payloads is True
    assert config.bot_identifier == "CHUCKY-X"


def test_overrides_win_over_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ANALYTICS_TOKEN", "env-token")
    monkeypatch.setenv("PORT", "8080")

    config = HubConfig.from_env(token="explicit", port=9000)

    assert config.token == "explicit"
    assert config.port == 9000


def test_missing_token_is_a_config_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ANALYTICS_TOKEN", raising=False)
    with pytest.raises(HubConfigError):
        HubConfig.from_env()


def test_bad_number_is_a_config_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ANALYTICS_TOKEN", "t")
    monkeypatch.setenv("STATSHUB_SEND_TIMEOUT", "soon")
    with pytest.raises(HubConfigError, match="STATSHUB_SEND_TIMEOUT"):
        HubConfig.from_env()


def test_persisted_limit_cannot_exceed_memory_limit() -> None:
    with pytest.raises(HubConfigError):
        HubConfig(token="t", history_limit=10, persisted_history_limit=20)
