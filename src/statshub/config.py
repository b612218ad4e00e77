"""Service configuration for statshub."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from statshub.exceptions import HubConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env_key: str, raw: str, cast: type[int] | type[float]) -> int | float:
    try:
        return cast(raw)
    except ValueError as exc:
        raise HubConfigError(f"{env_key} must be a number, got {raw!r}") from exc


@dataclasses.dataclass(frozen=True)
class HubConfig:
    """Service configuration.

    Parameters
    ----------
    token : str
        Bearer token the producer must present on ``/api/update``.
    bot_identifier : str
        Value the producer must send in ``X-Bot-Identifier``.
    data_file : str
        Path of the checkpoint file.
    checkpoint_interval : float
        Seconds between periodic checkpoints.
    history_limit : int
        History entries kept in memory.
    persisted_history_limit : int
        History entries written to the checkpoint file.
    send_timeout : float
        Upper bound in seconds for a single subscriber send.  A subscriber
        that does not accept a message within this window is evicted.
    static_dir : str
        Directory holding ``dashboard.html`` and its assets.
    host : str
        Bind address for ``python -m statshub``.
    port : int
        Bind port for ``python -m statshub``.
    log_payloads : bool
        Emit redacted snapshot payloads at DEBUG level.
    """

    token: str
    bot_identifier: str = "CHUCKY-X"
    data_file: str = "analytics-data.json"
    checkpoint_interval: float = 60.0
    history_limit: int = 100
    persisted_history_limit: int = 50
    send_timeout: float = 5.0
    static_dir: str = "public"
    host: str = "0.0.0.0"
    port: int = 10000
    log_payloads: bool = False

    def __post_init__(self) -> None:
        if not self.token:
            raise HubConfigError("token must be non-empty")
        if self.checkpoint_interval <= 0:
            raise HubConfigError("checkpoint_interval must be positive")
        if self.history_limit < 1 or self.persisted_history_limit < 0:
            raise HubConfigError("history limits must be positive")
        if self.persisted_history_limit > self.history_limit:
            raise HubConfigError("persisted_history_limit cannot exceed history_limit")
        if self.send_timeout <= 0:
            raise HubConfigError("send_timeout must be positive")

    @classmethod
    def from_env(cls, **overrides: Any) -> HubConfig:
        """Create configuration from environment variables.

        Reads ``ANALYTICS_TOKEN``, ``HOST``, ``PORT`` and the optional
        ``STATSHUB_*`` variables. Explicit keyword arguments override
        environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        HubConfig
            Populated configuration.

        Raises
        ------
        HubConfigError
            If the token is missing or a numeric variable does not parse.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "ANALYTICS_TOKEN": "token",
            "STATSHUB_BOT_IDENTIFIER": "bot_identifier",
            "STATSHUB_DATA_FILE": "data_file",
            "STATSHUB_STATIC_DIR": "static_dir",
            "HOST": "host",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = val.strip()

        _ENV_NUMBER_MAP: dict[str, tuple[str, type[int] | type[float]]] = {
            "STATSHUB_CHECKPOINT_INTERVAL": ("checkpoint_interval", float),
            "STATSHUB_HISTORY_LIMIT": ("history_limit", int),
            "STATSHUB_PERSISTED_HISTORY_LIMIT": ("persisted_history_limit", int),
            "STATSHUB_SEND_TIMEOUT": ("send_timeout", float),
            "PORT": ("port", int),
        }
        for env_key, (field_name, cast) in _ENV_NUMBER_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_number(env_key, val, cast)

        if "log_payloads" not in overrides:
            config_kwargs["log_payloads"] = _env_bool(env.get("STATSHUB_LOG_PAYLOADS"), False)

        config_kwargs.update(overrides)
        if "token" not in config_kwargs:
            raise HubConfigError("ANALYTICS_TOKEN is not set")

        return cls(**config_kwargs)
