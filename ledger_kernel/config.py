"""
Ledger Kernel Configuration (``ledger_kernel.config``).

Responsibility
--------------
Loads runtime settings from a YAML file into a frozen ``LedgerConfig``
and applies environment overrides.  Services receive the config object
by constructor injection; nothing reads the environment at call time.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key or out-of-range value  -> ``ValidationError``.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Mapping, Self

import yaml

from ledger_kernel.exceptions import ValidationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("config")

CONFIG_PATH_ENV = "LEDGER_CONFIG"
DATABASE_URL_ENVS = ("LEDGER_DATABASE_URL", "DATABASE_URL")
LOG_LEVEL_ENV = "LEDGER_LOG_LEVEL"

DEFAULT_DATABASE_URL = "sqlite://"


@dataclass(frozen=True)
class LedgerConfig:
    """Runtime settings for the ledger kernel."""

    database_url: str = DEFAULT_DATABASE_URL
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10

    # Fiscal calendar (default: April 1)
    fiscal_year_start_month: int = 4
    fiscal_year_start_day: int = 1

    # Dashboard
    cash_bank_keywords: tuple[str, ...] = ("cash", "bank")
    recent_voucher_limit: int = 10

    # Voucher listing
    default_page_size: int = 50
    max_page_size: int = 500

    # Opening position
    opening_voucher_number: str = "OP-BAL-01"
    stock_account_name: str = "Stock-in-Hand"
    opening_balance_tolerance: Decimal = Decimal("0.01")

    log_level: str = "INFO"

    def __post_init__(self):
        if not 1 <= self.fiscal_year_start_month <= 12:
            raise ValidationError(
                "fiscal_year_start_month must be between 1 and 12",
                field="fiscal_year_start_month",
            )
        if not 1 <= self.fiscal_year_start_day <= 28:
            raise ValidationError(
                "fiscal_year_start_day must be between 1 and 28",
                field="fiscal_year_start_day",
            )
        if self.default_page_size < 1 or self.max_page_size < self.default_page_size:
            raise ValidationError(
                "page sizes must satisfy 1 <= default_page_size <= max_page_size",
                field="default_page_size",
            )
        if self.recent_voucher_limit < 1:
            raise ValidationError(
                "recent_voucher_limit must be positive",
                field="recent_voucher_limit",
            )
        if self.opening_balance_tolerance < 0:
            raise ValidationError(
                "opening_balance_tolerance cannot be negative",
                field="opening_balance_tolerance",
            )
        if not self.cash_bank_keywords:
            raise ValidationError(
                "cash_bank_keywords must name at least one keyword",
                field="cash_bank_keywords",
            )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        return cls()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Create config from a mapping, coercing YAML scalars."""
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValidationError(
                f"Unknown configuration keys: {', '.join(unknown)}",
                field=unknown[0],
            )

        values = dict(data)
        if "cash_bank_keywords" in values:
            keywords = values["cash_bank_keywords"]
            if isinstance(keywords, str):
                keywords = [keywords]
            values["cash_bank_keywords"] = tuple(
                str(k).strip().lower() for k in keywords if str(k).strip()
            )
        if "opening_balance_tolerance" in values:
            try:
                values["opening_balance_tolerance"] = Decimal(
                    str(values["opening_balance_tolerance"])
                )
            except InvalidOperation:
                raise ValidationError(
                    "opening_balance_tolerance must be a number",
                    field="opening_balance_tolerance",
                ) from None
        if "log_level" in values:
            values["log_level"] = str(values["log_level"]).upper()

        logger.debug(
            "ledger_config_loading_from_dict",
            extra={"keys": sorted(values.keys())},
        )
        return cls(**values)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValidationError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValidationError(f"Configuration file {path} must contain a mapping")
    return data


def load_config(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerConfig:
    """
    Build the active configuration.

    Resolution order: defaults, then the YAML file (``path`` or the
    ``LEDGER_CONFIG`` environment variable), then environment overrides
    for the database URL and log level.
    """
    env = os.environ if environ is None else environ
    data: dict[str, Any] = {}

    config_path = path or env.get(CONFIG_PATH_ENV)
    if config_path:
        data.update(load_yaml_file(Path(config_path)))

    for name in DATABASE_URL_ENVS:
        if env.get(name):
            data["database_url"] = env[name]
            break
    if env.get(LOG_LEVEL_ENV):
        data["log_level"] = env[LOG_LEVEL_ENV]

    config = LedgerConfig.from_dict(data)
    logger.info(
        "ledger_config_loaded",
        extra={
            "source": str(config_path) if config_path else None,
            "fiscal_year_start_month": config.fiscal_year_start_month,
        },
    )
    return config
