"""
SettingsResolver for the ffund allocation engine.

Resolves the milestone cap ratio from the global settings store without
ever blocking on it.
"""

import logging
from decimal import Decimal
from typing import Optional

from ffund.constants import MILESTONE_PERCENTAGE_SETTING, get_default_milestone_percentage
from ffund.stores import SettingsStore
from ffund.utils import to_decimal

logger = logging.getLogger(__name__)


class SettingsResolver:
    """
    Reads allocation settings with a hard fallback.

    The settings endpoint reports the milestone cap either as a ratio
    (0.2) or as a percentage (20). Both are accepted. Anything missing,
    unreadable or outside (0, 1] after normalization falls back to the
    configured default (0.20).
    """

    def __init__(
        self,
        store: Optional[SettingsStore] = None,
        fallback: Optional[Decimal] = None,
    ) -> None:
        self.store = store
        self._fallback = fallback if fallback is not None else get_default_milestone_percentage()

    @property
    def fallback(self) -> Decimal:
        return self._fallback

    def max_milestone_percentage(self) -> Decimal:
        """Return the per-milestone cap as a ratio of the phase goal."""
        if self.store is None:
            return self._fallback

        try:
            raw = self.store.get_setting(MILESTONE_PERCENTAGE_SETTING)
        except Exception as e:
            logger.warning(
                "Could not read %s (%s); using fallback %s",
                MILESTONE_PERCENTAGE_SETTING, e, self._fallback,
            )
            return self._fallback

        ratio = self.normalize(raw)
        if ratio is None:
            logger.warning(
                "Setting %s has unusable value %r; using fallback %s",
                MILESTONE_PERCENTAGE_SETTING, raw, self._fallback,
            )
            return self._fallback
        return ratio

    @staticmethod
    def normalize(raw) -> Optional[Decimal]:
        """Turn a ratio or percentage into a ratio in (0, 1], or None."""
        value = to_decimal(raw)
        if value is None or value <= 0:
            return None
        if value > 1:
            value = value / 100
        if value > 1:
            return None
        return value
