"""
Service layer building blocks.

- ServiceResult: result wrapper for expected outcomes (handled, skipped, failed)
- BaseService: logger and transaction helpers for service classes

Pattern Comparison:
    - ServiceResult: expected failures that the caller inspects
    - Exceptions: domain errors the caller must not ignore

Usage:
    from core.services import BaseService, ServiceResult

    class PaymentService(BaseService):
        def cancel(self, subscription_id):
            with self.atomic():
                ...
            self.get_logger().info("Cancelled subscription")
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful
        error: Error message if failed
        error_code: Machine-readable error code
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def ok(cls, data: T) -> ServiceResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error: str, error_code: str | None = None) -> ServiceResult[T]:
        return cls(success=False, error=error, error_code=error_code)

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides a per-class logger and an explicit transaction boundary.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named after the concrete service class."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute the enclosed block in a database transaction.

        Example:
            with self.atomic():
                subscription = Subscription.objects.select_for_update().get(pk=pk)
                subscription.cancel()
                subscription.save()
        """
        with transaction.atomic():
            yield
