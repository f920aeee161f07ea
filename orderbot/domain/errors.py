"""Domain exceptions shared by the conversation and order services."""

from __future__ import annotations


class OrderBotError(Exception):
    """Base class for every error raised by the order bot core."""


class CatalogLookupError(OrderBotError):
    """Raised when a product cannot be resolved from the catalog."""


class OrderStoreError(OrderBotError):
    """Raised when the order store is unavailable or rejects a write."""


class ForbiddenPatchError(OrderStoreError):
    """Raised when a status patch tries to touch frozen order fields."""


class NotificationError(OrderBotError):
    """Raised by a notifier when an outbound message could not be sent."""


class InvalidOrderTransitionError(OrderBotError):
    """Raised when an order status transition is not in the lifecycle graph."""


class NoVendorAvailableError(OrderBotError):
    """Raised when no vendor can take a new order."""


class SessionStoreError(OrderBotError):
    """Raised when the session backend cannot read or write a session."""
