"""Service for starting to track products and subscribing users to them."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime

from ..api.client import SnapshotSource
from ..errors import NotifierFailure
from ..models import NotificationCategory, PricePoint, Product, ProductInfo, Subscriber
from ..notifications.base import Notifier
from ..storage.repository import ProductStore
from .price_stats import aggregate

logger = logging.getLogger(__name__)

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_PATTERN.match(email.strip()))


@dataclass(slots=True)
class SubscriptionService:
    """Manages the set of tracked products and their subscribers."""

    source: SnapshotSource
    repository: ProductStore
    notifier: Notifier

    def track(self, url: str) -> Product:
        """Fetch ``url`` and store it, appending to its history if already tracked."""

        snapshot = self.source.fetch(url)
        existing = self.repository.get(snapshot.url)
        history = list(existing.price_history) if existing else []
        history.append(PricePoint(price=snapshot.price, observed_at=datetime.now(UTC)))
        stats = aggregate(history)

        product = self.repository.upsert(
            snapshot.url,
            {
                "title": snapshot.title,
                "current_price": snapshot.price,
                "currency": snapshot.currency,
                "image_url": snapshot.image_url,
                "is_out_of_stock": snapshot.is_out_of_stock,
                "original_price": snapshot.original_price,
                "discount_rate": snapshot.discount_rate,
                "description": snapshot.description,
                "price_history": history,
                "lowest_price": stats.lowest,
                "highest_price": stats.highest,
                "average_price": stats.average,
            },
        )
        logger.info("Tracking %s (%s price points)", product.identifier, len(product.price_history))
        return product

    def subscribe(self, identifier: str, email: str) -> bool:
        """Add ``email`` to the subscribers of ``identifier``.

        Returns ``False`` when the address is already subscribed. Raises
        ``KeyError`` for an unknown product and ``ValueError`` for an invalid
        address.
        """

        email = email.strip()
        if not is_valid_email(email):
            raise ValueError(f"Invalid e-mail address: {email!r}")

        product = self.repository.get(identifier)
        if product is None:
            raise KeyError(f"Unknown product: {identifier}")
        if product.has_subscriber(email):
            return False

        updated = self.repository.upsert(
            identifier,
            {"subscribers": [*product.subscribers, Subscriber(email=email)]},
        )
        try:
            self.notifier.send(
                NotificationCategory.WELCOME,
                ProductInfo(title=updated.title, identifier=updated.identifier),
                [email],
            )
        except NotifierFailure as exc:
            logger.warning("Subscribed %s to %s but the welcome mail failed: %s", email, identifier, exc)
        return True

    def all_products(self) -> list[Product]:
        return self.repository.list_all()
