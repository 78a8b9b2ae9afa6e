"""Coordinates fetching, persistence, and alerting for every tracked product."""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ..api.client import SnapshotSource
from ..config import PipelineConfig
from ..errors import NotifierFailure, SourceUnavailable, StoreUnavailable, SystemicFailure
from ..models import (
    BatchResult,
    NotificationCategory,
    PricePoint,
    PriceSnapshot,
    Product,
    ProductInfo,
    ProductOutcome,
    RunStatus,
)
from ..notifications.base import Notifier
from ..storage.repository import ProductStore
from .notification_policy import DecisionPolicy, decide
from .price_stats import aggregate

logger = logging.getLogger(__name__)

BUDGET_EXCEEDED = "batch time budget exceeded"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class OutcomeCollector:
    """Thread-safe sink for per-product outcomes.

    Keeps at most one outcome per product. Once closed, late outcomes from
    abandoned units are dropped.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._outcomes: dict[str, ProductOutcome] = {}
        self._closed = False

    def add(self, outcome: ProductOutcome) -> bool:
        with self._lock:
            if self._closed or outcome.product_id in self._outcomes:
                logger.debug("Dropping late outcome for %s", outcome.product_id)
                return False
            self._outcomes[outcome.product_id] = outcome
            return True

    def close(self, expected: Iterable[str], reason: str) -> None:
        """Stop accepting outcomes and mark every missing product as skipped."""

        with self._lock:
            self._closed = True
            for product_id in expected:
                if product_id not in self._outcomes:
                    self._outcomes[product_id] = ProductOutcome.skipped(product_id, reason)

    def outcomes(self) -> list[ProductOutcome]:
        with self._lock:
            return list(self._outcomes.values())


@dataclass(slots=True)
class PricingService:
    """Runs the refresh-and-notify pipeline over every product in the store."""

    source: SnapshotSource
    repository: ProductStore
    notifier: Notifier
    config: PipelineConfig = field(default_factory=PipelineConfig)
    clock: Callable[[], datetime] = _utcnow

    @property
    def policy(self) -> DecisionPolicy:
        return DecisionPolicy(
            threshold_percent=self.config.threshold_percent,
            strict_new_low=self.config.strict_new_low,
        )

    def run(self) -> BatchResult:
        """Refresh every tracked product concurrently.

        Per-product failures are reported as outcomes. Only a failure to list
        the products raises, as ``SystemicFailure``.
        """

        started_at = self.clock()
        try:
            products = self.repository.list_all()
        except Exception as exc:
            raise SystemicFailure(f"Failed to get all products: {exc}") from exc

        logger.info("Refreshing %s products", len(products))
        collector = OutcomeCollector()
        abandoned = threading.Event()
        executor = ThreadPoolExecutor(
            max_workers=max(self.config.max_workers, 1),
            thread_name_prefix="pricewise-refresh",
        )
        try:
            futures = [executor.submit(self._run_unit, product, collector, abandoned) for product in products]
            _, not_done = wait(futures, timeout=self.config.batch_time_budget_seconds)
            if not_done:
                logger.warning(
                    "Batch time budget of %ss exceeded; abandoning %s products",
                    self.config.batch_time_budget_seconds,
                    len(not_done),
                )
                abandoned.set()
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        collector.close((product.identifier for product in products), BUDGET_EXCEEDED)

        result = BatchResult(
            overall_status=RunStatus.OK,
            outcomes=collector.outcomes(),
            started_at=started_at,
            finished_at=self.clock(),
        )
        logger.info(
            "Refresh finished: %s updated, %s failed, %s skipped",
            len(result.updated),
            len(result.failed),
            len(result.skipped),
        )
        return result

    def run_safely(self) -> BatchResult:
        """Like :meth:`run`, but reports a systemic failure as a result."""

        started_at = self.clock()
        try:
            return self.run()
        except SystemicFailure as exc:
            logger.error("Refresh aborted: %s", exc)
            return BatchResult(
                overall_status=RunStatus.SYSTEMIC_FAILURE,
                started_at=started_at,
                finished_at=self.clock(),
                message=str(exc),
            )

    def _run_unit(self, product: Product, collector: OutcomeCollector, abandoned: threading.Event) -> None:
        try:
            outcome = self.refresh_product(product, abandoned)
        except Exception as exc:
            logger.exception("Unexpected error refreshing %s", product.identifier)
            outcome = ProductOutcome.failed(product.identifier, f"Unexpected error: {exc}")
        collector.add(outcome)

    def refresh_product(self, product: Product, abandoned: threading.Event | None = None) -> ProductOutcome:
        """Fetch, merge, persist, decide and notify for a single product."""

        identifier = product.identifier
        try:
            snapshot = self.source.fetch(identifier, timeout=self.config.fetch_timeout_seconds)
        except SourceUnavailable as exc:
            logger.warning("Could not fetch %s: %s", identifier, exc)
            return ProductOutcome.failed(identifier, f"Source unavailable: {exc}")

        fields = self.merged_fields(product, snapshot)

        # Nothing has been written yet, so an abandoned unit leaves the stored record intact.
        # A unit past this check still upserts and notifies after run() returns, though it is reported skipped.
        if abandoned is not None and abandoned.is_set():
            return ProductOutcome.skipped(identifier, BUDGET_EXCEEDED)

        try:
            updated = self.repository.upsert(identifier, fields)
        except StoreUnavailable as exc:
            logger.warning("Could not store %s: %s", identifier, exc)
            return ProductOutcome.failed(identifier, f"Store unavailable: {exc}")

        category = decide(product, snapshot, self.policy)
        notice = None
        if category is not NotificationCategory.NONE and updated.subscribers:
            notice = self._notify(category, updated)
        return ProductOutcome.updated(identifier, category=category, notice=notice)

    def merged_fields(self, product: Product, snapshot: PriceSnapshot) -> dict[str, Any]:
        """Build the record that replaces ``product`` after observing ``snapshot``."""

        history = [*product.price_history, PricePoint(price=snapshot.price, observed_at=self.clock())]
        stats = aggregate(history)
        return {
            "title": snapshot.title or product.title,
            "current_price": snapshot.price,
            "currency": snapshot.currency or product.currency,
            "image_url": snapshot.image_url or product.image_url,
            "is_out_of_stock": snapshot.is_out_of_stock,
            "original_price": snapshot.original_price,
            "discount_rate": snapshot.discount_rate,
            "description": snapshot.description or product.description,
            "price_history": history,
            "lowest_price": stats.lowest,
            "highest_price": stats.highest,
            "average_price": stats.average,
        }

    def _notify(self, category: NotificationCategory, product: Product) -> str | None:
        info = ProductInfo(title=product.title, identifier=product.identifier)
        try:
            self.notifier.send(category, info, product.subscriber_emails)
        except NotifierFailure as exc:
            logger.warning("Could not notify subscribers of %s: %s", product.identifier, exc)
            return f"Notification failed: {exc}"
        except Exception as exc:
            logger.exception("Unexpected notifier error for %s", product.identifier)
            return f"Notification failed: {exc}"
        return None
