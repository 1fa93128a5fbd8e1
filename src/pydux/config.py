"""Store configuration for pydux."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pydux.exceptions import PyduxConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_int(name: str, value: str) -> int:
    try:
        return int(value.strip())
    except ValueError as exc:
        raise PyduxConfigError(f"{name} must be an integer, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class StoreConfig:
    """Store configuration.

    Parameters
    ----------
    check_immutability : bool
        Install :class:`~pydux.middleware.ImmutabilityCheckMiddleware` as the
        innermost link.  Every dispatch deep-copies the previous state, so
        leave this off outside development and tests.
    check_serializability : bool
        Install :class:`~pydux.middleware.SerializabilityCheckMiddleware`,
        which warns about action payloads holding non JSON-like values.
    log_actions : bool
        Install :class:`~pydux.middleware.LoggingMiddleware` as the
        outermost link.
    history_limit : int
        When greater than zero, install a
        :class:`~pydux.middleware.HistoryMiddleware` keeping that many
        entries.
    redact_keys : frozenset[str]
        Extra (case-insensitive) payload keys masked in log output.
    max_log_string : int
        Strings longer than this are truncated in log output.
    """

    check_immutability: bool = False
    check_serializability: bool = False
    log_actions: bool = False
    history_limit: int = 0
    redact_keys: frozenset[str] = frozenset()
    max_log_string: int = 512

    def __post_init__(self) -> None:
        if self.history_limit < 0:
            raise PyduxConfigError("history_limit must be >= 0")
        if self.max_log_string <= 0:
            raise PyduxConfigError("max_log_string must be > 0")

    @classmethod
    def from_env(cls, **overrides: Any) -> StoreConfig:
        """Create configuration from ``PYDUX_*`` environment variables.

        Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        StoreConfig
            Populated configuration.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        _ENV_BOOL_MAP = {
            "PYDUX_CHECK_IMMUTABILITY": "check_immutability",
            "PYDUX_CHECK_SERIALIZABILITY": "check_serializability",
            "PYDUX_LOG_ACTIONS": "log_actions",
        }
        for env_key, field_name in _ENV_BOOL_MAP.items():
            if field_name not in overrides:
                config_kwargs[field_name] = _env_bool(env.get(env_key), False)

        limit_env = env.get("PYDUX_HISTORY_LIMIT")
        if limit_env is not None and "history_limit" not in overrides:
            config_kwargs["history_limit"] = _env_int("PYDUX_HISTORY_LIMIT", limit_env)

        max_string_env = env.get("PYDUX_MAX_LOG_STRING")
        if max_string_env is not None and "max_log_string" not in overrides:
            config_kwargs["max_log_string"] = _env_int("PYDUX_MAX_LOG_STRING", max_string_env)

        keys_env = env.get("PYDUX_REDACT_KEYS")
        if keys_env is not None and "redact_keys" not in overrides:
            config_kwargs["redact_keys"] = frozenset(k.strip() for k in keys_env.split(",") if k.strip())

        # Allow callers to pass any iterable of keys
        redact_override = overrides.pop("redact_keys", None)
        if redact_override is not None:
            config_kwargs["redact_keys"] = frozenset(redact_override)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
