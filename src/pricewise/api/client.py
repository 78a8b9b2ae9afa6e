"""Clients that fetch a current price snapshot for a product page."""
from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Optional

import requests
from bs4 import BeautifulSoup
from bs4.element import Tag

from ..errors import SourceUnavailable
from ..models import PriceSnapshot

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    ),
    "Accept-Language": "en-US,en;q=0.9",
}

_PRICE_PATTERN = re.compile(r"\d+(?:[.,]\d{3})*(?:\.\d+)?")


class SnapshotSource(ABC):
    """Anything that can report the current state of a product page."""

    @abstractmethod
    def fetch(self, identifier: str, timeout: Optional[float] = None) -> PriceSnapshot:
        """Return a fresh snapshot or raise ``SourceUnavailable``."""


@dataclass(slots=True)
class AmazonProductClient(SnapshotSource):
    """Scrapes an Amazon product page into a :class:`PriceSnapshot`.

    Only the handful of fields the tracker stores are extracted. Pages that
    look like a robot check, return a non-200 status or carry no recognisable
    price raise ``SourceUnavailable`` so the caller can record the failure.
    """

    default_timeout: float = 30.0
    headers: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HEADERS))
    default_currency: str = "$"

    def fetch(self, identifier: str, timeout: Optional[float] = None) -> PriceSnapshot:
        try:
            response = requests.get(
                identifier,
                headers=self.headers,
                timeout=timeout or self.default_timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise SourceUnavailable(f"Request failed: {exc}", identifier) from exc

        html = response.text
        if looks_like_robot_check(html):
            raise SourceUnavailable("Blocked by a robot check page", identifier)

        return self.parse(identifier, html)

    def parse(self, identifier: str, html: str) -> PriceSnapshot:
        """Extract a snapshot from the product page ``html``."""

        soup = BeautifulSoup(html, "html.parser")

        title = _text_or_empty(soup.select_one("#productTitle"))
        current_price = extract_price(
            soup.select(".priceToPay span.a-price-whole"),
            soup.select(".a.size.base.a-color-price"),
            soup.select(".a-button-selected .a-color-base"),
        )
        original_price = extract_price(
            soup.select("#priceblock_ourprice"),
            soup.select(".a-price.a-text-price span.a-offscreen"),
            soup.select("#listPrice"),
            soup.select("#priceblock_dealprice"),
            soup.select(".a-size-base.a-color-price"),
        )
        price = current_price if current_price is not None else original_price
        if price is None:
            raise SourceUnavailable("No price found on page", identifier)
        if not title:
            raise SourceUnavailable("No title found on page", identifier)

        availability = _text_or_empty(soup.select_one("#availability span")).lower()
        discount_text = _text_or_empty(soup.select_one(".savingsPercentage"))

        return PriceSnapshot(
            url=identifier,
            price=price,
            title=title,
            currency=extract_currency(soup.select_one(".a-price-symbol")) or self.default_currency,
            image_url=extract_image(soup),
            is_out_of_stock=availability == "currently unavailable",
            original_price=original_price if original_price is not None else price,
            discount_rate=_parse_discount(discount_text),
            description=extract_description(soup),
        )


def looks_like_robot_check(html: str) -> bool:
    lower = html.lower()
    return (
        "robot check" in lower
        or "/errors/validatecaptcha" in lower
        or "enter the characters you see below" in lower
    )


def _text_or_empty(tag: Tag | None) -> str:
    return tag.get_text(strip=True) if tag is not None else ""


def extract_price(*candidates: Iterable[Tag]) -> Optional[float]:
    """Return the first parseable price among the candidate element groups."""

    for group in candidates:
        for element in group:
            text = element.get_text(strip=True)
            match = _PRICE_PATTERN.search(text)
            if match is None:
                continue
            try:
                return float(match.group(0).replace(",", ""))
            except ValueError:
                continue
    return None


def extract_currency(tag: Tag | None) -> str:
    text = _text_or_empty(tag)
    return text[:1] if text else ""


def extract_image(soup: BeautifulSoup) -> str:
    for selector in ("#imgBlkFront", "#landingImage"):
        element = soup.select_one(selector)
        if element is None:
            continue
        raw = element.get("data-a-dynamic-image")
        if raw:
            try:
                images = json.loads(raw)
            except ValueError:
                logger.debug("Unparseable image map on %s", selector)
                continue
            if isinstance(images, dict) and images:
                return str(next(iter(images)))
        src = element.get("src")
        if src:
            return str(src)
    return ""


def extract_description(soup: BeautifulSoup) -> str:
    for selector in ("#feature-bullets li span.a-list-item", ".a-unordered-list .a-list-item"):
        lines = [element.get_text(strip=True) for element in soup.select(selector)]
        lines = [line for line in lines if line]
        if lines:
            return "\n".join(lines)
    return ""


def _parse_discount(text: str) -> Optional[float]:
    cleaned = text.replace("-", "").replace("%", "").strip()
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None
