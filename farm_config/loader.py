"""
Configuration Loader (``farm_config.loader``).

Responsibility
--------------
Reads a posting configuration YAML file and parses it into a frozen
``PostingConfig``.  The packaged ``defaults.yaml`` is used unless a path is
given or ``FARM_LEDGER_CONFIG`` names one.

Architecture position
---------------------
**Config layer** -- infrastructure.  Depends on ``farm_kernel.domain``
only; the kernel never imports this module.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` naming the offending
  key; no silent defaults for required fields.
* Control-account kinds missing from the YAML keep their built-in rule.
* ``compute_checksum`` is deterministic for equal data.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown enum value  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import os
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from farm_config.schema import PostingConfig
from farm_kernel.domain.dtos import ControlAccountKind
from farm_kernel.domain.policy import (
    DEFAULT_CONTROL_ACCOUNT_RULES,
    ChartAccountDef,
    ControlAccountRule,
    DuplicatePolicy,
    FeedCostingMode,
    NegativeInventoryPolicy,
    PostingPolicy,
)
from farm_kernel.logging_config import get_logger

logger = get_logger("config")

CONFIG_ENV_VAR = "FARM_LEDGER_CONFIG"
DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_control_rule(kind: ControlAccountKind, data: dict[str, Any]) -> ControlAccountRule:
    """Parse one ``control_accounts`` entry."""
    return ControlAccountRule(
        kind=kind,
        label=data["label"],
        subtypes=tuple(data.get("subtypes", ())),
        patterns=tuple(data.get("patterns", ())),
        fallback_types=tuple(data.get("fallback_types", ())),
    )


def parse_chart_account(data: dict[str, Any]) -> ChartAccountDef:
    """Parse one ``chart_of_accounts`` entry."""
    return ChartAccountDef(
        code=str(data["code"]),
        name=data["name"],
        account_type=data["type"],
        subtype=data.get("subtype"),
    )


def parse_policy(data: dict[str, Any]) -> PostingPolicy:
    """Build the kernel PostingPolicy from the parsed YAML document."""
    posting = data.get("posting", {})

    rules = dict(DEFAULT_CONTROL_ACCOUNT_RULES)
    for kind_name, rule_data in (data.get("control_accounts") or {}).items():
        kind = ControlAccountKind(kind_name)
        rules[kind] = parse_control_rule(kind, rule_data)

    return PostingPolicy(
        balance_tolerance=Decimal(str(posting.get("balance_tolerance", "0.01"))),
        duplicate_policy=DuplicatePolicy(posting.get("duplicate_policy", "absorb")),
        negative_inventory=NegativeInventoryPolicy(
            posting.get("negative_inventory", "allow")
        ),
        strict_control_accounts=bool(posting.get("strict_control_accounts", False)),
        feed_costing_mode=FeedCostingMode(posting.get("feed_costing_mode", "expense")),
        control_accounts=rules,
        chart_of_accounts=tuple(
            parse_chart_account(a) for a in data.get("chart_of_accounts") or ()
        ),
    )


def parse_posting_config(data: dict[str, Any], source_path: str | None = None) -> PostingConfig:
    """Parse a whole configuration document."""
    return PostingConfig(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        policy=parse_policy(data),
        checksum=compute_checksum(data),
        source_path=source_path,
    )


def resolve_config_path(path: Path | str | None = None) -> Path:
    """Explicit path, else ``$FARM_LEDGER_CONFIG``, else the packaged defaults."""
    if path is not None:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULTS_PATH


def load_posting_config(path: Path | str | None = None) -> PostingConfig:
    """
    Load and validate a posting configuration.

    Emits a ``FARM_CONFIG_TRACE`` log entry tying later postings to the
    exact configuration that governed them.
    """
    config_path = resolve_config_path(path)
    data = load_yaml_file(config_path)
    config = parse_posting_config(data, source_path=str(config_path))
    logger.info(
        "FARM_CONFIG_TRACE",
        extra={
            "trace_type": "FARM_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source_path": str(config_path),
            "duplicate_policy": config.policy.duplicate_policy.value,
            "negative_inventory": config.policy.negative_inventory.value,
            "chart_account_count": len(config.policy.chart_of_accounts),
        },
    )
    return config
