"""Storage backends for tracked products."""
from __future__ import annotations

import copy
import dataclasses
import hashlib
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from ..errors import StoreUnavailable
from ..models import Product

logger = logging.getLogger(__name__)

_PRODUCT_FIELDS = frozenset(f.name for f in dataclasses.fields(Product))


class ProductStore(ABC):
    """Narrow interface the pipeline needs from persistence."""

    @abstractmethod
    def list_all(self) -> list[Product]:
        """Return every tracked product. Raises ``StoreUnavailable``."""

    @abstractmethod
    def get(self, identifier: str) -> Product | None:
        """Return the product stored under ``identifier``, if any."""

    @abstractmethod
    def upsert(self, identifier: str, fields: Mapping[str, Any]) -> Product:
        """Overwrite ``fields`` of the product as one record and return it.

        A product that does not exist yet is created from ``fields``.
        Raises ``StoreUnavailable`` when the record cannot be written.
        """


def _merge(identifier: str, existing: Product | None, fields: Mapping[str, Any]) -> Product:
    unknown = set(fields) - _PRODUCT_FIELDS
    if unknown:
        raise StoreUnavailable(f"Unknown product fields: {', '.join(sorted(unknown))}", identifier)
    values = {key: value for key, value in fields.items() if key != "identifier"}
    try:
        if existing is None:
            return Product(identifier=identifier, **values)
        return dataclasses.replace(existing, **values)
    except TypeError as exc:
        raise StoreUnavailable(f"Cannot build product record: {exc}", identifier) from exc


class InMemoryProductStore(ProductStore):
    """Keeps products in a dictionary; used for tests and local experiments."""

    def __init__(self, products: list[Product] | None = None) -> None:
        self._lock = threading.Lock()
        self._products: dict[str, Product] = {}
        for product in products or []:
            self._products[product.identifier] = copy.deepcopy(product)

    def list_all(self) -> list[Product]:
        with self._lock:
            return [copy.deepcopy(product) for product in self._products.values()]

    def get(self, identifier: str) -> Product | None:
        with self._lock:
            product = self._products.get(identifier)
            return copy.deepcopy(product) if product is not None else None

    def upsert(self, identifier: str, fields: Mapping[str, Any]) -> Product:
        with self._lock:
            merged = _merge(identifier, self._products.get(identifier), copy.deepcopy(dict(fields)))
            self._products[identifier] = merged
            return copy.deepcopy(merged)


class JsonProductStore(ProductStore):
    """Persists each product as a JSON document inside ``base_path``.

    Writes go to a temporary file which then replaces the document, so a
    reader never observes a half-written product.
    """

    def __init__(self, base_path: Path) -> None:
        self._base_path = base_path
        self._base_path.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _file_for(self, identifier: str) -> Path:
        digest = hashlib.sha1(identifier.encode("utf-8")).hexdigest()
        return self._base_path / f"{digest}.json"

    def file_path_for(self, identifier: str) -> Path:
        """Public accessor for the document path of ``identifier``."""

        return self._file_for(identifier)

    def _read(self, file_path: Path) -> Product | None:
        try:
            with file_path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")
            return Product.from_dict(data)
        except FileNotFoundError:
            return None
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping unreadable product document %s: %s", file_path, exc)
            return None

    def list_all(self) -> list[Product]:
        try:
            paths = sorted(self._base_path.glob("*.json"))
        except OSError as exc:
            raise StoreUnavailable(f"Cannot list products in {self._base_path}: {exc}") from exc

        products: list[Product] = []
        for file_path in paths:
            try:
                product = self._read(file_path)
            except OSError as exc:
                raise StoreUnavailable(f"Cannot read {file_path}: {exc}") from exc
            if product is not None:
                products.append(product)
        return products

    def get(self, identifier: str) -> Product | None:
        try:
            return self._read(self._file_for(identifier))
        except OSError as exc:
            raise StoreUnavailable(f"Cannot read product: {exc}", identifier) from exc

    def upsert(self, identifier: str, fields: Mapping[str, Any]) -> Product:
        file_path = self._file_for(identifier)
        with self._lock:
            try:
                existing = self._read(file_path)
            except OSError as exc:
                raise StoreUnavailable(f"Cannot read product: {exc}", identifier) from exc
            # An unreadable document still holds history and subscribers; never overwrite it blindly.
            if existing is None and file_path.exists():
                raise StoreUnavailable(f"Refusing to overwrite unreadable document {file_path}", identifier)
            merged = _merge(identifier, existing, fields)

            temp_path = file_path.with_suffix(".json.tmp")
            try:
                with temp_path.open("w", encoding="utf-8") as handle:
                    json.dump(merged.to_dict(), handle, indent=2)
                os.replace(temp_path, file_path)
            except OSError as exc:
                temp_path.unlink(missing_ok=True)
                raise StoreUnavailable(f"Cannot write product: {exc}", identifier) from exc
        return merged
