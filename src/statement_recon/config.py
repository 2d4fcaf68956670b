"""Configuration loader and validation for reconciliation settings."""

from decimal import Decimal
from pathlib import Path
from typing import Any, Optional
import logging

import yaml
from pydantic import BaseModel, Field, ValidationError

from .utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class OFXInputConfig(BaseModel):
    """Settings for reading bank statement exports."""

    encoding: str = "latin-1"
    format: str = "ofx"


class LedgerCsvConfig(BaseModel):
    """Settings for reading ledger entry CSV exports."""

    encoding: str = "utf-8"
    delimiter: str = ","
    date_format: str = "%Y-%m-%d"
    column_mappings: dict[str, str] = Field(
        default_factory=lambda: {
            "entry_id": "id",
            "account_id": "account_id",
            "direction": "direction",
            "net_amount": "net_amount",
            "due_date": "due_date",
            "settlement_date": "settlement_date",
            "status": "status",
            "counterparty": "counterparty",
            "document_number": "document_number",
        }
    )


class InputConfig(BaseModel):
    """Configuration for input file parsing."""

    ofx: OFXInputConfig = Field(default_factory=OFXInputConfig)
    ledger_csv: LedgerCsvConfig = Field(default_factory=LedgerCsvConfig)


class MatchingTier(BaseModel):
    """A matching tier, tried in list order."""

    name: str
    description: str = ""
    enabled: bool = True


class MatchingConfig(BaseModel):
    """Configuration for the matcher."""

    amount_tolerance: Decimal = Decimal("0.01")
    date_window_days: int = Field(default=3, ge=0)
    tiers: list[MatchingTier] = Field(default_factory=list)


class StorageConfig(BaseModel):
    """Configuration for the transaction store."""

    database_url: str = "sqlite:///reconciliation.db"
    timeout_seconds: float = Field(default=10.0, gt=0)
    echo: bool = False


class ExcelOutputConfig(BaseModel):
    """Configuration for Excel output."""

    filename_template: str = "reconciliation_{account}_{date}_{time}.xlsx"


class SheetConfig(BaseModel):
    """Configuration for a report sheet."""

    enabled: bool = True
    name: str


class SheetsConfig(BaseModel):
    """Configuration for all report sheets."""

    summary: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Summary"))
    matched: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Matched"))
    unresolved: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Unresolved"))
    ignored: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Ignored"))
    divergent: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Divergent"))


class OutputConfig(BaseModel):
    """Configuration for output."""

    excel: ExcelOutputConfig = Field(default_factory=ExcelOutputConfig)
    sheets: SheetsConfig = Field(default_factory=SheetsConfig)


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None


class ReconConfig(BaseModel):
    """Main configuration model for reconciliation."""

    input: InputConfig = Field(default_factory=InputConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    config_file_path: Optional[str] = None


def get_default_config() -> dict[str, Any]:
    """Return the default configuration as a dictionary."""
    return {
        "input": {
            "ofx": {
                "encoding": "latin-1",
                "format": "ofx",
            },
            "ledger_csv": {
                "encoding": "utf-8",
                "delimiter": ",",
                "date_format": "%Y-%m-%d",
                "column_mappings": {
                    "entry_id": "id",
                    "account_id": "account_id",
                    "direction": "direction",
                    "net_amount": "net_amount",
                    "due_date": "due_date",
                    "settlement_date": "settlement_date",
                    "status": "status",
                    "counterparty": "counterparty",
                    "document_number": "document_number",
                },
            },
        },
        "matching": {
            "amount_tolerance": "0.01",
            "date_window_days": 3,
            "tiers": [
                {
                    "name": "exact_date",
                    "description": "Same direction and amount, settled or due on the posting date",
                    "enabled": True,
                },
                {
                    "name": "date_window",
                    "description": "Same direction and amount, closest date within the window",
                    "enabled": True,
                },
            ],
        },
        "storage": {
            "database_url": "sqlite:///reconciliation.db",
            "timeout_seconds": 10.0,
            "echo": False,
        },
        "output": {
            "excel": {
                "filename_template": "reconciliation_{account}_{date}_{time}.xlsx",
            },
            "sheets": {
                "summary": {"enabled": True, "name": "Summary"},
                "matched": {"enabled": True, "name": "Matched"},
                "unresolved": {"enabled": True, "name": "Unresolved"},
                "ignored": {"enabled": True, "name": "Ignored"},
                "divergent": {"enabled": True, "name": "Divergent"},
            },
        },
        "logging": {
            "level": "INFO",
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            "file": None,
        },
    }


def load_config(config_path: Optional[Path] = None) -> ReconConfig:
    """
    Load configuration from a YAML file or use defaults.

    Args:
        config_path: Path to YAML configuration file (optional)

    Returns:
        ReconConfig object with loaded or default settings

    Raises:
        ConfigurationError: If the file is not valid YAML or fails validation
    """
    config_dict = get_default_config()

    if config_path and config_path.exists():
        logger.info(f"Loading configuration from: {config_path}")
        try:
            with open(config_path, "r") as f:
                user_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(user_config, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")

        config_dict = _deep_merge(config_dict, user_config)
        config_dict["config_file_path"] = str(config_path)
    else:
        logger.info("Using default configuration")

    try:
        return ReconConfig(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary to merge on top

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def generate_default_config(output_path: Path) -> None:
    """
    Generate a default configuration file.

    Args:
        output_path: Path to write the configuration file
    """
    config_dict = get_default_config()

    yaml_content = """# Bank statement reconciliation configuration
# Generated configuration file - customize as needed

"""
    yaml_content += yaml.dump(config_dict, default_flow_style=False, sort_keys=False)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        f.write(yaml_content)

    logger.info(f"Generated configuration file: {output_path}")
