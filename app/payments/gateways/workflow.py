"""
Compensation tracking for multi-step provider workflows.

Creating a subscription touches the provider several times (customer,
product/plan, price, subscription). A GatewayWorkflow records each
completed step; when a later step fails, ``compensate()`` walks the
steps in reverse and asks the adapter to undo them. Anything that cannot
be undone is logged at ERROR with its provider id so it can be
reconciled by hand.

Usage:
    workflow = GatewayWorkflow(gateway="stripe", operation="create_subscription")
    try:
        customer_id = self.create_customer(info)
        workflow.record(STEP_CUSTOMER, customer_id)
        ...
    except Exception:
        workflow.compensate(self)
        raise
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from payments.gateways.base import BaseGateway

logger = logging.getLogger(__name__)

STEP_CUSTOMER = "customer"
STEP_PRODUCT = "product"
STEP_PRICE = "price"
STEP_PLAN = "plan"
STEP_SUBSCRIPTION = "subscription"


@dataclass
class WorkflowStep:
    """
    A provider object created (or reused) by a workflow.

    Attributes:
        kind: One of the STEP_* constants
        ref: Provider id of the object
        created: False for reused objects, which are never compensated
        extra: Provider-specific data needed to undo the step
    """

    kind: str
    ref: str
    created: bool = True
    extra: dict[str, Any] = field(default_factory=dict)


class GatewayWorkflow:
    """Ordered record of provider steps for one operation."""

    def __init__(self, gateway: str, operation: str, context: dict[str, Any] | None = None):
        self.gateway = str(gateway)
        self.operation = operation
        self.context = context or {}
        self.steps: list[WorkflowStep] = []
        self.orphans: list[WorkflowStep] = []

    def record(
        self, kind: str, ref: str, created: bool = True, **extra: Any
    ) -> WorkflowStep:
        step = WorkflowStep(kind=kind, ref=ref, created=created, extra=extra)
        self.steps.append(step)
        return step

    def ref(self, kind: str) -> str | None:
        """Provider id of the most recent step of ``kind``."""
        for step in reversed(self.steps):
            if step.kind == kind:
                return step.ref
        return None

    def as_metadata(self) -> dict[str, str]:
        return {step.kind: step.ref for step in self.steps}

    def compensate(self, adapter: BaseGateway) -> list[WorkflowStep]:
        """
        Undo created steps in reverse order.

        Never raises: a cleanup failure must not mask the error that
        triggered compensation.

        Returns:
            Steps left behind at the provider (orphans)
        """
        for step in reversed(self.steps):
            if not step.created:
                continue
            try:
                undone = adapter.compensate_step(step)
            except Exception as e:
                logger.error(
                    f"Failed to clean up {step.kind} after {self.operation} failure",
                    extra={
                        **self._log_context(step),
                        "error": str(e),
                    },
                )
                undone = False

            if undone:
                logger.info(
                    f"Compensated {step.kind} after {self.operation} failure",
                    extra=self._log_context(step),
                )
            else:
                self.orphans.append(step)
                logger.error(
                    f"Orphaned {self.gateway} {step.kind} requires manual reconciliation",
                    extra=self._log_context(step),
                )
        return self.orphans

    def _log_context(self, step: WorkflowStep) -> dict[str, Any]:
        return {
            **self.context,
            "gateway": self.gateway,
            "operation": self.operation,
            "step_kind": step.kind,
            "provider_ref": step.ref,
        }
