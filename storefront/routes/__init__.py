"""Storefront Routes"""

from .checkout import router as checkout_router
from .billing import router as billing_router

__all__ = [
    "checkout_router",
    "billing_router",
]
