"""
farm_config -- single public entrypoint for posting configuration.

Responsibility:
    Provides the runtime ``PostingConfig`` through ``get_active_config()``.
    Services receive the config's ``PostingPolicy``; nothing below this
    package reads YAML or environment variables.

Architecture position:
    Configuration.  Sits above ``farm_kernel`` and below ``farm_services``
    and ``farm_api``.  The kernel MUST NEVER import from ``farm_config``.

Failure modes:
    - ``FileNotFoundError`` -- the configured YAML file does not exist.
    - ``ValueError`` -- schema or policy validation failed.
"""

from __future__ import annotations

import threading

from farm_config.loader import load_posting_config
from farm_config.schema import PostingConfig

_active: PostingConfig | None = None
_lock = threading.Lock()


def get_active_config() -> PostingConfig:
    """
    The process-wide configuration, loaded once.

    Loads from ``$FARM_LEDGER_CONFIG`` or the packaged defaults on first
    call and returns the same instance afterwards.
    """
    global _active
    with _lock:
        if _active is None:
            _active = load_posting_config()
        return _active


def reset_active_config() -> None:
    """Forget the cached configuration. FOR TESTING ONLY."""
    global _active
    with _lock:
        _active = None


__all__ = [
    "PostingConfig",
    "get_active_config",
    "load_posting_config",
    "reset_active_config",
]
