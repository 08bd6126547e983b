"""Configuration loader and validation for matching policy and rules."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union
import logging

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .utils.exceptions import ConfigurationError
from .utils.money import to_decimal

logger = logging.getLogger(__name__)


class FieldKind(Enum):
    """Value kind of a rule field; decides which comparators are valid."""

    TEXT = "text"
    NUMBER = "number"
    DATE = "date"


class RuleField(Enum):
    """Normalized fields a rule condition can read from a line or a record."""

    LINE_DESCRIPTION = "line_description"
    LINE_REFERENCE = "line_reference"
    LINE_AMOUNT = "line_amount"
    LINE_ABSOLUTE_AMOUNT = "line_absolute_amount"
    LINE_DIRECTION = "line_direction"
    LINE_BANK_ACCOUNT_ID = "line_bank_account_id"
    LINE_CURRENCY = "line_currency"
    LINE_COMPANY_ID = "line_company_id"
    LINE_DATE = "line_date"
    RECORD_TYPE = "record_type"
    RECORD_AMOUNT = "record_amount"
    RECORD_REFERENCE = "record_reference"
    RECORD_COUNTERPARTY = "record_counterparty"
    RECORD_DESCRIPTION = "record_description"
    RECORD_PROJECT_ID = "record_project_id"
    RECORD_DATE = "record_date"

    @property
    def kind(self) -> FieldKind:
        if self in _NUMBER_FIELDS:
            return FieldKind.NUMBER
        if self in _DATE_FIELDS:
            return FieldKind.DATE
        return FieldKind.TEXT


_NUMBER_FIELDS = {
    RuleField.LINE_AMOUNT,
    RuleField.LINE_ABSOLUTE_AMOUNT,
    RuleField.RECORD_AMOUNT,
}
_DATE_FIELDS = {RuleField.LINE_DATE, RuleField.RECORD_DATE}


class Comparator(Enum):
    """Closed set of comparison operations for rule conditions."""

    EQUALS = "equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"


class RuleCondition(BaseModel):
    """A single (field, comparator, value) test."""

    field: RuleField
    comparator: Comparator = Comparator.EQUALS
    value: Union[str, int, float]

    @field_validator("value", mode="before")
    @classmethod
    def _date_to_iso(cls, value: Any) -> Any:
        # YAML loads unquoted 2024-03-01 as a date
        if isinstance(value, datetime):
            return value.date().isoformat()
        if isinstance(value, date):
            return value.isoformat()
        return value

    @model_validator(mode="after")
    def _check_comparator_for_kind(self) -> "RuleCondition":
        kind = self.field.kind
        ordering = self.comparator in (Comparator.GREATER_THAN, Comparator.LESS_THAN)

        if kind == FieldKind.TEXT and ordering:
            raise ValueError(
                f"Comparator '{self.comparator.value}' cannot be used with text field "
                f"'{self.field.value}'"
            )
        if kind != FieldKind.TEXT and self.comparator == Comparator.CONTAINS:
            raise ValueError(
                f"Comparator 'contains' cannot be used with {kind.value} field "
                f"'{self.field.value}'"
            )
        if kind == FieldKind.NUMBER:
            to_decimal(self.value)
        if kind == FieldKind.DATE:
            date.fromisoformat(str(self.value))
        return self


class MatchingRule(BaseModel):
    """
    A named, user-configured rule.

    When every condition holds for a (line, record) pair, ``points`` is added
    to that pair's heuristic score. Rules with a higher priority are checked
    first and the first full match wins.
    """

    id: str
    name: str
    description: str = ""
    enabled: bool = True
    priority: int = 0
    conditions: list[RuleCondition] = Field(min_length=1)
    points: int = 20
    auto_match_threshold: Optional[int] = Field(default=None, ge=1, le=100)


class SignalWeights(BaseModel):
    """Points awarded by each scoring signal."""

    amount_exact: int = 40
    amount_close: int = 20
    reference_match: int = 30
    date_exact: int = 20
    date_close: int = 10
    counterparty_match: int = 15
    description_match: int = 15


class ScoringConfig(BaseModel):
    """Heuristic scoring policy."""

    weights: SignalWeights = Field(default_factory=SignalWeights)
    auto_match_threshold: int = Field(default=85, ge=1, le=100)
    close_amount_percent: float = Field(default=1.0, ge=0)
    close_date_days: int = Field(default=3, ge=0)
    amount_tolerance: Decimal = Field(default=Decimal("0.01"), ge=0)
    max_suggestions: int = Field(default=5, ge=1)
    min_suggestion_score: int = Field(default=0, ge=0, le=100)
    min_keyword_length: int = Field(default=4, ge=1)
    stop_words: list[str] = Field(default_factory=lambda: list(DEFAULT_STOP_WORDS))


class InputConfig(BaseModel):
    """Configuration for input file parsing."""

    bank_statement: dict[str, Any] = Field(
        default_factory=lambda: {
            "encoding": "utf-8",
            "delimiter": ",",
            "default_currency": "THB",
            "column_mappings": {},
        }
    )
    records: dict[str, Any] = Field(
        default_factory=lambda: {
            "encoding": "utf-8",
            "delimiter": ",",
            "default_currency": "THB",
        }
    )


class ExcelOutputConfig(BaseModel):
    """Configuration for Excel output."""

    filename_template: str = "bank_reconciliation_{date}_{time}.xlsx"
    include_timestamp: bool = True


class SheetConfig(BaseModel):
    """Configuration for a report sheet."""

    enabled: bool = True
    name: str


class SheetsConfig(BaseModel):
    """Configuration for all report sheets."""

    summary: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Summary"))
    auto_matches: SheetConfig = Field(
        default_factory=lambda: SheetConfig(name="Auto Matches")
    )
    suggestions: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Suggestions"))
    unmatched: SheetConfig = Field(
        default_factory=lambda: SheetConfig(name="Unmatched Lines")
    )
    adjustments: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Adjustments"))
    audit_trail: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Audit Trail"))


class OutputConfig(BaseModel):
    """Configuration for output."""

    excel: ExcelOutputConfig = Field(default_factory=ExcelOutputConfig)
    sheets: SheetsConfig = Field(default_factory=SheetsConfig)


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ReconConfig(BaseModel):
    """Main configuration model for bank feed reconciliation."""

    input: InputConfig = Field(default_factory=InputConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    rules: list[MatchingRule] = Field(default_factory=list)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    config_file_path: Optional[str] = None

    @model_validator(mode="after")
    def _check_unique_rule_ids(self) -> "ReconConfig":
        seen: set[str] = set()
        for rule in self.rules:
            if rule.id in seen:
                raise ValueError(f"Duplicate matching rule id: {rule.id}")
            seen.add(rule.id)
        return self

    @property
    def enabled_rules(self) -> list[MatchingRule]:
        return [r for r in self.rules if r.enabled]


DEFAULT_STOP_WORDS = [
    "the",
    "and",
    "for",
    "from",
    "with",
    "payment",
    "transfer",
    "invoice",
    "receipt",
    "ltd",
    "limited",
    "co",
    "company",
    "inc",
    "bank",
]


def get_default_config() -> dict[str, Any]:
    """Return the default configuration as a dictionary."""
    return {
        "input": {
            "bank_statement": {
                "encoding": "utf-8",
                "delimiter": ",",
                "default_currency": "THB",
                "column_mappings": {},
            },
            "records": {
                "encoding": "utf-8",
                "delimiter": ",",
                "default_currency": "THB",
            },
        },
        "scoring": {
            "weights": {
                "amount_exact": 40,
                "amount_close": 20,
                "reference_match": 30,
                "date_exact": 20,
                "date_close": 10,
                "counterparty_match": 15,
                "description_match": 15,
            },
            "auto_match_threshold": 85,
            "close_amount_percent": 1.0,
            "close_date_days": 3,
            "amount_tolerance": "0.01",
            "max_suggestions": 5,
            "min_suggestion_score": 0,
            "min_keyword_length": 4,
            "stop_words": list(DEFAULT_STOP_WORDS),
        },
        "rules": [
            {
                "id": "card-settlement",
                "name": "Card settlement deposits",
                "description": "Merchant card settlements are customer receipts",
                "enabled": False,
                "priority": 10,
                "points": 20,
                "conditions": [
                    {
                        "field": "line_description",
                        "comparator": "contains",
                        "value": "CARD SETTLEMENT",
                    },
                    {"field": "record_type", "comparator": "equals", "value": "receipt"},
                ],
            },
        ],
        "output": {
            "excel": {
                "filename_template": "bank_reconciliation_{date}_{time}.xlsx",
                "include_timestamp": True,
            },
            "sheets": {
                "summary": {"enabled": True, "name": "Summary"},
                "auto_matches": {"enabled": True, "name": "Auto Matches"},
                "suggestions": {"enabled": True, "name": "Suggestions"},
                "unmatched": {"enabled": True, "name": "Unmatched Lines"},
                "adjustments": {"enabled": True, "name": "Adjustments"},
                "audit_trail": {"enabled": True, "name": "Audit Trail"},
            },
        },
        "logging": {
            "level": "INFO",
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
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
        ConfigurationError: If the file cannot be read or fails validation
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

        # Deep merge user config into defaults
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

    yaml_content = """# Bank Feed Reconciliation Configuration
# Generated configuration file - customize as needed

"""
    yaml_content += yaml.dump(config_dict, default_flow_style=False, sort_keys=False)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        f.write(yaml_content)

    logger.info(f"Generated configuration file: {output_path}")
