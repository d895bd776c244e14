"""
PostingConfig schema.

The runtime artifact of the configuration layer: a validated
``PostingPolicy`` (the kernel's view) plus the identity of the YAML it was
built from.

Key distinction:
  defaults.yaml / FARM_LEDGER_CONFIG = source artifact (human-authored)
  PostingConfig                      = runtime artifact (validated, frozen)
"""

from __future__ import annotations

from dataclasses import dataclass

from farm_kernel.domain.policy import PostingPolicy
from farm_kernel.logging_config import get_logger

logger = get_logger("config.schema")


@dataclass(frozen=True)
class PostingConfig:
    """
    Validated posting configuration.

    ``checksum`` is the SHA-256 of the canonical JSON form of the source
    YAML, so two configs with the same checksum behave identically.
    """

    config_id: str
    version: int
    policy: PostingPolicy
    checksum: str
    source_path: str | None = None

    def __post_init__(self):
        if not self.config_id.strip():
            raise ValueError("config_id must be non-empty")
        if self.version < 1:
            raise ValueError("version must be >= 1")
        logger.debug(
            "posting_config_initialized",
            extra={
                "config_id": self.config_id,
                "config_version": self.version,
                "checksum": self.checksum,
            },
        )

    # Convenience pass-throughs for callers that only read the config
    @property
    def balance_tolerance(self):
        return self.policy.balance_tolerance

    @property
    def duplicate_policy(self):
        return self.policy.duplicate_policy

    @property
    def negative_inventory(self):
        return self.policy.negative_inventory

    @property
    def chart_of_accounts(self):
        return self.policy.chart_of_accounts
