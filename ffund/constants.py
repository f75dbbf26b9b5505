"""
Constants for the ffund allocation engine.

Note: These constants serve as default fallback values.
Actual values are loaded from .ffund/config.json at runtime via ConfigManager.
"""
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, List, Optional, Tuple
import json

# =============================================================================
# Default Fallback Values
# These are used if config.json doesn't exist or doesn't specify a value.
# =============================================================================

# Phase scheduling defaults
DEFAULT_MIN_PHASE_DURATION_DAYS = 14
DEFAULT_PHASE_GAP_DAYS = 7

# Currency defaults
DEFAULT_CURRENCY_PLACES = 2
DEFAULT_CURRENCY_TOLERANCE = "0.01"
DEFAULT_CURRENCY_SYMBOL = "$"

# Milestone cap defaults
MILESTONE_PERCENTAGE_SETTING = "MILESTONE_VALUE_PERCENTAGE"
DEFAULT_MILESTONE_PERCENTAGE = "0.20"

# Projects in these statuses cannot be edited at all
DEFAULT_LOCKED_PROJECT_STATUSES = ["SUSPENDED", "CANCELLED"]

# Minimum phase count by project size: [minimum target, required phases]
DEFAULT_PHASE_COUNT_TIERS = [[0, 1], [100000, 2], [1000000, 3]]

# Percentage calculation defaults
DEFAULT_PERCENTAGE_ROUND_PRECISION = 1

# Validation messages (not configurable)
VALIDATION_TITLE_REQUIRED = "Milestone title is required."
VALIDATION_PHASE_REQUIRED = "A phase must be selected for the milestone."
VALIDATION_PRICE_REQUIRED = "Milestone price is required."
VALIDATION_GOAL_REQUIRED = "Phase funding goal is required."
VALIDATION_START_REQUIRED = "Phase start date is required."
VALIDATION_DURATION_REQUIRED = "Phase duration is required."

# Date format defaults
DEFAULT_DATE_FORMATS = [
    "%Y-%m-%d",      # YYYY-MM-DD (ISO 8601)
    "%Y/%m/%d",      # YYYY/MM/DD
    "%d-%m-%Y",      # DD-MM-YYYY
    "%d/%m/%Y",      # DD/MM/YYYY
    "%Y%m%d",        # YYYYMMDD
    "%d %B %Y",      # DD Month YYYY (e.g., 31 December 2024)
    "%d %b %Y",      # DD Mon YYYY (e.g., 31 Dec 2024)
    "%B %d, %Y",     # Month DD, YYYY (e.g., December 31, 2024)
    "%b %d, %Y",     # Mon DD, YYYY (e.g., Dec 31, 2024)
]

DATE_FORMAT_ERROR = (
    "Invalid date format. Supported formats: YYYY-MM-DD, YYYY/MM/DD, DD-MM-YYYY, "
    "DD/MM/YYYY, YYYYMMDD, 'DD Month YYYY', 'Month DD, YYYY'. "
    "Examples: 2024-12-31, 31/12/2024, '31 December 2024', 'December 31, 2024'."
)


# =============================================================================
# Config Loader
# Load values from .ffund/config.json at runtime.
# =============================================================================

DEFAULT_CONFIG_PATH = Path(".ffund") / "config.json"

_config_manager_instance: Optional['ConfigManager'] = None


class ConfigManager:
    """
    Reads .ffund/config.json once and answers typed lookups with a fallback.

    A missing or unreadable file behaves like an empty one, so every getter
    returns its default. Values of the wrong type also fall back.
    """

    def __init__(self, config_path: Optional[Path] = None) -> None:
        self._config: Optional[dict] = None
        self._config_path = config_path or DEFAULT_CONFIG_PATH

    def _load_config(self) -> dict:
        if self._config is None:
            try:
                with open(self._config_path, "r") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError):
                data = {}
            self._config = data if isinstance(data, dict) else {}
        return self._config

    def get(self, key: str, default: Any = None) -> Any:
        """Raw value of ``key``, or ``default`` when the key is absent."""
        return self._load_config().get(key, default)

    def get_int(self, key: str, default: int) -> int:
        """Day counts and precisions. Booleans and non-numeric values fall back."""
        value = self.get(key, default)
        if isinstance(value, bool):
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def get_list(self, key: str, default: list) -> list:
        """Status lists, tiers and date formats. Scalars fall back."""
        value = self.get(key, default)
        return list(value) if isinstance(value, (list, tuple)) else default

    def get_decimal(self, key: str, default: str) -> Decimal:
        """Money and ratio values, read through ``str`` so JSON floats stay exact."""
        value = self.get(key, default)
        try:
            return Decimal(str(value))
        except (InvalidOperation, TypeError, ValueError):
            return Decimal(default)

    def reload(self) -> dict:
        """Drop the cached values and read the file again."""
        self._config = None
        return self._load_config()

    @property
    def config_path(self) -> Path:
        return self._config_path


def get_config_manager(reset: bool = False) -> ConfigManager:
    """
    Get the singleton ConfigManager instance with default path.

    Args:
        reset: If True, reset the singleton and create a new instance.

    Returns:
        ConfigManager singleton instance.
    """
    global _config_manager_instance
    if _config_manager_instance is None or reset:
        _config_manager_instance = ConfigManager()
    return _config_manager_instance


def reset_config_manager() -> None:
    """Reset the singleton ConfigManager instance (useful for testing)."""
    global _config_manager_instance
    _config_manager_instance = None


# Convenience functions for common config access
# These use the singleton with default path (.ffund/config.json)
def get_min_phase_duration_days() -> int:
    """Get minimum phase duration from config or default."""
    return get_config_manager().get_int('min_phase_duration_days', DEFAULT_MIN_PHASE_DURATION_DAYS)


def get_phase_gap_days() -> int:
    """Get minimum gap between phases from config or default."""
    return get_config_manager().get_int('phase_gap_days', DEFAULT_PHASE_GAP_DAYS)


def get_currency_places() -> int:
    """Get currency decimal places from config or default."""
    return get_config_manager().get_int('currency_places', DEFAULT_CURRENCY_PLACES)


def get_currency_tolerance() -> Decimal:
    """Get equality tolerance for currency sums from config or default."""
    return get_config_manager().get_decimal('currency_tolerance', DEFAULT_CURRENCY_TOLERANCE)


def get_default_milestone_percentage() -> Decimal:
    """Get fallback milestone cap ratio from config or default."""
    return get_config_manager().get_decimal('default_milestone_percentage', DEFAULT_MILESTONE_PERCENTAGE)


def get_locked_project_statuses() -> List[str]:
    """Get project statuses that lock editing from config or default."""
    return get_config_manager().get_list('locked_project_statuses', DEFAULT_LOCKED_PROJECT_STATUSES)


def get_phase_count_tiers() -> List[Tuple[Decimal, int]]:
    """Get minimum phase count tiers from config or default, sorted by threshold."""
    raw = get_config_manager().get_list('phase_count_tiers', DEFAULT_PHASE_COUNT_TIERS)
    tiers = [(Decimal(str(threshold)), int(count)) for threshold, count in raw]
    return sorted(tiers, key=lambda tier: tier[0])


def get_date_formats() -> list:
    """Get date formats from config or default."""
    return get_config_manager().get_list('date_formats', DEFAULT_DATE_FORMATS)


def get_percentage_round_precision() -> int:
    """Get percentage round precision from config or default."""
    return get_config_manager().get_int('percentage_round_precision', DEFAULT_PERCENTAGE_ROUND_PRECISION)
