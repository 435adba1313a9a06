"""Checkout Routes

Endpoints:
- POST /api/checkout/summary - Price a cart
- POST /api/checkout/orders - Create an order once a payment method is chosen
- POST /api/checkout/orders/{order_id}/pay - Run one payment attempt
- POST /api/checkout/orders/{order_id}/abandon - Drop the in-flight attempt
- GET /api/checkout/orders/{order_id} - Order with its invoice
"""

from fastapi import APIRouter, HTTPException, Depends, Request
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, EmailStr, Field
import logging

from storefront.models.orders import CustomerInfo, Invoice, Order
from storefront.models.pricing import CartItemKind, OrderSummary, PricingSettings
from storefront.services.order_service import (
    OrderLifecycleController,
    OrderNotFoundError,
    OrderRetryNotAllowedError,
    PaymentAttemptOutcome,
    PaymentMethodDisabledError,
)
from storefront.services.payment_builder import UnsupportedPaymentMethodError
from storefront.services.pricing_engine import build_cart_line, compute_summary_for_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/checkout", tags=["Checkout"])


class CartLineInput(BaseModel):
    kind: CartItemKind
    quantity: int = Field(gt=0)
    id: Optional[str] = None


class SummaryRequest(BaseModel):
    lines: List[CartLineInput] = []


class CustomerInput(BaseModel):
    email: EmailStr
    name: str = Field(min_length=1)


class CreateOrderRequest(BaseModel):
    lines: List[CartLineInput]
    payment_method: str
    customer: CustomerInput


class PayRequest(BaseModel):
    fields: Dict[str, Any] = {}


class OrderDetailResponse(BaseModel):
    order: Order
    invoice: Optional[Invoice] = None


def get_controller(request: Request) -> OrderLifecycleController:
    return request.app.state.order_controller


def get_pricing(request: Request) -> PricingSettings:
    return request.app.state.pricing_settings


def _build_lines(lines: List[CartLineInput], pricing: PricingSettings):
    return [build_cart_line(line.kind, line.quantity, pricing, line_id=line.id) for line in lines]


@router.post("/summary", response_model=OrderSummary)
async def price_cart(body: SummaryRequest, pricing: PricingSettings = Depends(get_pricing)):
    """Compute HT / tax / TTC for the submitted cart."""
    return compute_summary_for_settings(_build_lines(body.lines, pricing), pricing)


@router.post("/orders", response_model=Order, status_code=201)
async def create_order(
    body: CreateOrderRequest,
    controller: OrderLifecycleController = Depends(get_controller),
    pricing: PricingSettings = Depends(get_pricing),
):
    try:
        return await controller.checkout(
            _build_lines(body.lines, pricing),
            pricing,
            body.payment_method,
            CustomerInfo(email=body.customer.email, name=body.customer.name),
        )
    except (UnsupportedPaymentMethodError, PaymentMethodDisabledError) as e:
        logger.warning(f"Checkout rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/orders/{order_id}/pay", response_model=PaymentAttemptOutcome)
async def pay_order(
    order_id: str,
    body: PayRequest,
    controller: OrderLifecycleController = Depends(get_controller),
):
    """Run one payment attempt.

    Validation errors and gateway failures are returned in the body with
    HTTP 200; only integration errors map to 4xx.
    """
    try:
        return await controller.submit_payment(order_id, body.fields)
    except OrderNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except OrderRetryNotAllowedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except UnsupportedPaymentMethodError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/orders/{order_id}/abandon")
async def abandon_order(order_id: str, controller: OrderLifecycleController = Depends(get_controller)):
    try:
        abandoned = await controller.abandon(order_id)
    except OrderNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"order_id": order_id, "abandoned": abandoned}


@router.get("/orders/{order_id}", response_model=OrderDetailResponse)
async def get_order(order_id: str, controller: OrderLifecycleController = Depends(get_controller)):
    order = await controller.get_order(order_id)
    if not order:
        raise HTTPException(status_code=404, detail=f"Order not found: {order_id}")
    invoice = await controller.get_invoice_for_order(order_id)
    return OrderDetailResponse(order=order, invoice=invoice)
