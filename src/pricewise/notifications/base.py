"""Notification abstractions for the price alert system."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence

from ..models import NotificationCategory, ProductInfo

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Base class for delivering alerts to subscribers."""

    @abstractmethod
    def send(self, category: NotificationCategory, product: ProductInfo, recipients: Sequence[str]) -> None:
        """Dispatch one alert about ``product`` to ``recipients``.

        Implementations raise ``NotifierFailure`` when delivery fails.
        """


class NullNotifier(Notifier):
    """Fallback notifier used when no transport is configured."""

    def send(self, category: NotificationCategory, product: ProductInfo, recipients: Sequence[str]) -> None:
        logger.info(
            "No notifier configured; dropping %s alert for %s (%s recipients)",
            category.value,
            product.identifier,
            len(recipients),
        )
