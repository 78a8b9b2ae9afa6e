"""Domain models used throughout the Pricewise price tracking service."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Optional


@dataclass(slots=True, frozen=True)
class PricePoint:
    """Single price observation stored in a product's history."""

    price: float
    observed_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"price": self.price, "observedAt": self.observed_at.isoformat()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PricePoint:
        observed_at = data.get("observedAt") or data.get("date")
        return cls(
            price=float(data["price"]),
            observed_at=datetime.fromisoformat(observed_at) if observed_at else datetime.now(UTC),
        )


@dataclass(slots=True, frozen=True)
class Subscriber:
    """A user who asked to be alerted about a product."""

    email: str


@dataclass(slots=True, frozen=True)
class PriceSnapshot:
    """Result of one fetch from the snapshot source."""

    url: str
    price: float
    title: str
    currency: str = ""
    image_url: str = ""
    is_out_of_stock: bool = False
    original_price: Optional[float] = None
    discount_rate: Optional[float] = None
    description: str = ""
    category: str = ""
    reviews_count: int = 0
    stars: Optional[float] = None


@dataclass(slots=True, frozen=True)
class PriceStats:
    """Aggregates derived from a full price history."""

    lowest: float
    highest: float
    average: float


@dataclass(slots=True)
class Product:
    """A tracked product as held by the product store."""

    identifier: str
    title: str
    current_price: float
    currency: str = ""
    image_url: str = ""
    is_out_of_stock: bool = False
    price_history: list[PricePoint] = field(default_factory=list)
    lowest_price: float = 0.0
    highest_price: float = 0.0
    average_price: float = 0.0
    subscribers: list[Subscriber] = field(default_factory=list)
    original_price: Optional[float] = None
    discount_rate: Optional[float] = None
    description: str = ""
    category: str = ""
    reviews_count: int = 0
    stars: Optional[float] = None

    @property
    def subscriber_emails(self) -> list[str]:
        return [subscriber.email for subscriber in self.subscribers]

    def has_subscriber(self, email: str) -> bool:
        wanted = email.strip().lower()
        return any(subscriber.email.lower() == wanted for subscriber in self.subscribers)

    def to_dict(self) -> dict[str, Any]:
        """Serialise the product into its JSON document form."""

        return {
            "url": self.identifier,
            "title": self.title,
            "currentPrice": self.current_price,
            "currency": self.currency,
            "image": self.image_url,
            "isOutOfStock": self.is_out_of_stock,
            "priceHistory": [point.to_dict() for point in self.price_history],
            "lowestPrice": self.lowest_price,
            "highestPrice": self.highest_price,
            "averagePrice": self.average_price,
            "users": [{"email": subscriber.email} for subscriber in self.subscribers],
            "originalPrice": self.original_price,
            "discountRate": self.discount_rate,
            "description": self.description,
            "category": self.category,
            "reviewsCount": self.reviews_count,
            "stars": self.stars,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Product:
        """Build a product from the document produced by :meth:`to_dict`."""

        history = [PricePoint.from_dict(point) for point in data.get("priceHistory") or []]
        subscribers: list[Subscriber] = []
        for user in data.get("users") or []:
            email = user.get("email") if isinstance(user, dict) else user
            if email:
                subscribers.append(Subscriber(email=str(email)))
        return cls(
            identifier=str(data["url"]),
            title=str(data.get("title") or ""),
            current_price=float(data.get("currentPrice") or 0.0),
            currency=str(data.get("currency") or ""),
            image_url=str(data.get("image") or ""),
            is_out_of_stock=bool(data.get("isOutOfStock", False)),
            price_history=history,
            lowest_price=float(data.get("lowestPrice") or 0.0),
            highest_price=float(data.get("highestPrice") or 0.0),
            average_price=float(data.get("averagePrice") or 0.0),
            subscribers=subscribers,
            original_price=_optional_float(data.get("originalPrice")),
            discount_rate=_optional_float(data.get("discountRate")),
            description=str(data.get("description") or ""),
            category=str(data.get("category") or ""),
            reviews_count=int(data.get("reviewsCount") or 0),
            stars=_optional_float(data.get("stars")),
        )


@dataclass(slots=True, frozen=True)
class ProductInfo:
    """The subset of a product a notifier needs to render a message."""

    title: str
    identifier: str


class NotificationCategory(str, Enum):
    """Closed set of reasons to contact subscribers."""

    STOCK_CHANGE = "STOCK_CHANGE"
    LOWEST_PRICE = "LOWEST_PRICE"
    THRESHOLD_DROP = "THRESHOLD_DROP"
    NONE = "NONE"
    # Sent by the subscription flow only, never decided by the pipeline.
    WELCOME = "WELCOME"


class OutcomeStatus(str, Enum):
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


class RunStatus(str, Enum):
    OK = "ok"
    SYSTEMIC_FAILURE = "systemicFailure"


@dataclass(slots=True, frozen=True)
class ProductOutcome:
    """What happened to one product during a pipeline run."""

    product_id: str
    status: OutcomeStatus
    detail: Optional[str] = None
    notice: Optional[str] = None
    category: Optional[NotificationCategory] = None

    @classmethod
    def updated(
        cls,
        product_id: str,
        category: NotificationCategory = NotificationCategory.NONE,
        notice: Optional[str] = None,
    ) -> ProductOutcome:
        return cls(product_id=product_id, status=OutcomeStatus.UPDATED, category=category, notice=notice)

    @classmethod
    def failed(cls, product_id: str, reason: str) -> ProductOutcome:
        return cls(product_id=product_id, status=OutcomeStatus.FAILED, detail=reason)

    @classmethod
    def skipped(cls, product_id: str, reason: str) -> ProductOutcome:
        return cls(product_id=product_id, status=OutcomeStatus.SKIPPED, detail=reason)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"productId": self.product_id, "status": self.status.value}
        if self.detail:
            payload["detail"] = self.detail
        if self.notice:
            payload["notice"] = self.notice
        if self.category is not None:
            payload["category"] = self.category.value
        return payload


@dataclass(slots=True)
class BatchResult:
    """Structured result handed back to whoever triggered a run."""

    overall_status: RunStatus
    outcomes: list[ProductOutcome] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: Optional[datetime] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.overall_status is RunStatus.OK

    def _with_status(self, status: OutcomeStatus) -> list[ProductOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status is status]

    @property
    def updated(self) -> list[ProductOutcome]:
        return self._with_status(OutcomeStatus.UPDATED)

    @property
    def failed(self) -> list[ProductOutcome]:
        return self._with_status(OutcomeStatus.FAILED)

    @property
    def skipped(self) -> list[ProductOutcome]:
        return self._with_status(OutcomeStatus.SKIPPED)

    def by_product(self) -> dict[str, ProductOutcome]:
        return {outcome.product_id: outcome for outcome in self.outcomes}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "overallStatus": self.overall_status.value,
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
        }
        if self.message:
            payload["message"] = self.message
        return payload


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
