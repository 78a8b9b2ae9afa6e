"""Exception types raised by the pipeline and its collaborators."""
from __future__ import annotations

from typing import Optional


class PricewiseError(Exception):
    """Base class for errors raised by Pricewise."""

    def __init__(self, message: str, identifier: Optional[str] = None) -> None:
        super().__init__(message)
        self.identifier = identifier


class SourceUnavailable(PricewiseError):
    """The snapshot source could not produce a price (network, parse, not found)."""


class StoreUnavailable(PricewiseError):
    """The product store failed to list or persist products."""


class NotifierFailure(PricewiseError):
    """A notification could not be delivered."""


class SystemicFailure(PricewiseError):
    """The run cannot proceed at all, e.g. products cannot be listed."""
