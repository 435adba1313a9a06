"""Billing Routes

Endpoints:
- POST /api/billing/reconcile - Apply an external payment confirmation
"""

from fastapi import APIRouter, Depends
import logging

from storefront.routes.checkout import get_controller
from storefront.services.order_service import OrderLifecycleController, ReconciliationEvent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/billing", tags=["Billing"])


@router.post("/reconcile")
async def reconcile_payment(
    event: ReconciliationEvent,
    controller: OrderLifecycleController = Depends(get_controller),
):
    """Returns applied | already_applied | stale. Stale events are never reapplied."""
    outcome = await controller.reconcile(event)
    return {"event_id": event.event_id, "order_id": event.order_id, "outcome": outcome.value}
