"""
Ledger Configuration Schema.

Defines the structure and documented defaults for the stock ledger.
Override at instantiation, load from ``STOCK_LEDGER_*`` environment
variables with ``LedgerConfig.from_env()``, or from a YAML mapping with
``LedgerConfig.from_yaml(path)``:

    timezone: America/Mexico_City
    low_stock_threshold: "5"
    near_expiry_days: 7

The timezone MUST be the same for every producer and consumer of
calendar dates (sales, purchases, expenses, closures), otherwise a
closure will aggregate the wrong day.
"""

import os
from dataclasses import dataclass, fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Mapping, Self
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from stock_kernel.logging_config import get_logger

logger = get_logger("config")

_ENV_PREFIX = "STOCK_LEDGER_"


@dataclass(frozen=True)
class LedgerConfig:
    """
    Configuration schema for the stock ledger.

        config = LedgerConfig(
            timezone="Europe/Madrid",
            low_stock_threshold=Decimal("3"),
        )
    """

    timezone: str = "America/Mexico_City"

    # Status classification
    low_stock_threshold: Decimal = Decimal("5")
    near_expiry_days: int = 7

    # Cash reconciliation
    exact_match_epsilon: Decimal = Decimal("0.01")
    manager_role: str = "encargado"

    # Adjustments
    max_manual_increase: Decimal = Decimal("10000")

    quantity_places: int = 3

    def __post_init__(self):
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone '{self.timezone}'") from exc

        if self.low_stock_threshold < 0:
            raise ValueError("low_stock_threshold cannot be negative")
        if self.near_expiry_days < 0:
            raise ValueError("near_expiry_days cannot be negative")
        if self.exact_match_epsilon <= 0:
            raise ValueError("exact_match_epsilon must be positive")
        if self.max_manual_increase <= 0:
            raise ValueError("max_manual_increase must be positive")
        if not self.manager_role.strip():
            raise ValueError("manager_role cannot be empty")
        if not 0 <= self.quantity_places <= 6:
            raise ValueError("quantity_places must be between 0 and 6")

        logger.debug(
            "ledger_config_initialized",
            extra={
                "timezone": self.timezone,
                "low_stock_threshold": str(self.low_stock_threshold),
                "near_expiry_days": self.near_expiry_days,
                "exact_match_epsilon": str(self.exact_match_epsilon),
                "manager_role": self.manager_role,
            },
        )

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the documented defaults."""
        return cls()

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Self:
        """Build a config from ``STOCK_LEDGER_*`` variables.

        Unset variables keep their defaults.  Malformed numbers raise
        ValueError naming the offending variable.
        """
        env = os.environ if environ is None else environ
        kwargs: dict = {}

        def _decimal(name: str) -> Decimal:
            raw = env[_ENV_PREFIX + name]
            try:
                return Decimal(raw)
            except InvalidOperation as exc:
                raise ValueError(f"{_ENV_PREFIX}{name} is not a decimal: {raw!r}") from exc

        def _int(name: str) -> int:
            raw = env[_ENV_PREFIX + name]
            try:
                return int(raw)
            except ValueError as exc:
                raise ValueError(f"{_ENV_PREFIX}{name} is not an integer: {raw!r}") from exc

        if _ENV_PREFIX + "TIMEZONE" in env:
            kwargs["timezone"] = env[_ENV_PREFIX + "TIMEZONE"]
        if _ENV_PREFIX + "MANAGER_ROLE" in env:
            kwargs["manager_role"] = env[_ENV_PREFIX + "MANAGER_ROLE"]
        for field_name in ("low_stock_threshold", "exact_match_epsilon", "max_manual_increase"):
            if _ENV_PREFIX + field_name.upper() in env:
                kwargs[field_name] = _decimal(field_name.upper())
        for field_name in ("near_expiry_days", "quantity_places"):
            if _ENV_PREFIX + field_name.upper() in env:
                kwargs[field_name] = _int(field_name.upper())

        return cls(**kwargs)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Self:
        """Build a config from a plain mapping of field names to values.

        Raises:
            ValueError: unknown keys or malformed values.
        """
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ValueError(f"Unknown ledger config keys: {', '.join(unknown)}")

        kwargs: dict = {}
        for name, value in data.items():
            default = getattr(cls, name)
            if isinstance(default, Decimal):
                try:
                    kwargs[name] = Decimal(str(value))
                except InvalidOperation as exc:
                    raise ValueError(f"{name} is not a decimal: {value!r}") from exc
            elif isinstance(default, int):
                if isinstance(value, bool) or not isinstance(value, int):
                    raise ValueError(f"{name} must be an integer, got {value!r}")
                kwargs[name] = value
            else:
                kwargs[name] = str(value)
        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: Path | str) -> Self:
        """
        Load a config from a YAML file.  An empty file yields the defaults.

        Raises:
            FileNotFoundError: if the file does not exist.
            yaml.YAMLError: if the file contains invalid YAML.
            ValueError: if the document is not a mapping or has bad values.
        """
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Ledger config in {path} must be a mapping")
        logger.info("ledger_config_loaded", extra={"path": str(path)})
        return cls.from_mapping(data)
