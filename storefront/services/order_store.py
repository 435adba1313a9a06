"""
Order Store - persistence collaborator for orders and invoices.

The lifecycle controller only talks to the OrderStore interface. Two
adapters ship with the package:
- InMemoryOrderStore: dict-backed, used by tests and when MONGO_URL is unset
- MongoOrderStore: motor-backed (orders, invoices, counters collections)

Durability and transactions are the adapter's concern, not the pipeline's.
"""
import logging
from typing import Dict, Optional

from pymongo import ReturnDocument

from storefront.database import database
from storefront.models.orders import Invoice, Order

logger = logging.getLogger(__name__)

COUNTERS_COLLECTION = "counters"
INVOICE_COUNTER_PREFIX = "invoice_seq_"


class OrderStore:
    """Interface for order/invoice persistence."""

    async def save_order(self, order: Order) -> None:
        raise NotImplementedError

    async def get_order(self, order_id: str) -> Optional[Order]:
        raise NotImplementedError

    async def save_invoice(self, invoice: Invoice) -> None:
        raise NotImplementedError

    async def get_invoice(self, invoice_id: str) -> Optional[Invoice]:
        raise NotImplementedError

    async def get_invoice_for_order(self, order_id: str) -> Optional[Invoice]:
        raise NotImplementedError

    async def next_invoice_sequence(self, year: int) -> int:
        """Next 1-based invoice sequence number for `year`."""
        raise NotImplementedError


class InMemoryOrderStore(OrderStore):
    """Keeps deep copies so callers never share mutable records with the store."""

    def __init__(self):
        self._orders: Dict[str, Order] = {}
        self._invoices: Dict[str, Invoice] = {}
        self._invoice_by_order: Dict[str, str] = {}
        self._sequences: Dict[int, int] = {}

    async def save_order(self, order: Order) -> None:
        self._orders[order.order_id] = order.model_copy(deep=True)

    async def get_order(self, order_id: str) -> Optional[Order]:
        order = self._orders.get(order_id)
        return order.model_copy(deep=True) if order else None

    async def save_invoice(self, invoice: Invoice) -> None:
        self._invoices[invoice.invoice_id] = invoice.model_copy(deep=True)
        self._invoice_by_order[invoice.order_id] = invoice.invoice_id

    async def get_invoice(self, invoice_id: str) -> Optional[Invoice]:
        invoice = self._invoices.get(invoice_id)
        return invoice.model_copy(deep=True) if invoice else None

    async def get_invoice_for_order(self, order_id: str) -> Optional[Invoice]:
        invoice_id = self._invoice_by_order.get(order_id)
        if not invoice_id:
            return None
        return await self.get_invoice(invoice_id)

    async def next_invoice_sequence(self, year: int) -> int:
        self._sequences[year] = self._sequences.get(year, 0) + 1
        return self._sequences[year]


class MongoOrderStore(OrderStore):
    """Orders and invoices stored as JSON-mode pydantic dumps."""

    def __init__(self, db=None):
        self.db = db

    def _get_db(self):
        if self.db is None:
            self.db = database.get_db()
        return self.db

    async def save_order(self, order: Order) -> None:
        db = self._get_db()
        await db.orders.replace_one(
            {"order_id": order.order_id},
            order.model_dump(mode="json"),
            upsert=True,
        )

    async def get_order(self, order_id: str) -> Optional[Order]:
        db = self._get_db()
        doc = await db.orders.find_one({"order_id": order_id}, {"_id": 0})
        return Order.model_validate(doc) if doc else None

    async def save_invoice(self, invoice: Invoice) -> None:
        db = self._get_db()
        await db.invoices.replace_one(
            {"invoice_id": invoice.invoice_id},
            invoice.model_dump(mode="json"),
            upsert=True,
        )

    async def get_invoice(self, invoice_id: str) -> Optional[Invoice]:
        db = self._get_db()
        doc = await db.invoices.find_one({"invoice_id": invoice_id}, {"_id": 0})
        return Invoice.model_validate(doc) if doc else None

    async def get_invoice_for_order(self, order_id: str) -> Optional[Invoice]:
        db = self._get_db()
        doc = await db.invoices.find_one({"order_id": order_id}, {"_id": 0})
        return Invoice.model_validate(doc) if doc else None

    async def next_invoice_sequence(self, year: int) -> int:
        """Atomic per-year counter: { _id: "invoice_seq_YYYY", seq: N }"""
        db = self._get_db()
        result = await db[COUNTERS_COLLECTION].find_one_and_update(
            {"_id": f"{INVOICE_COUNTER_PREFIX}{year}"},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return (result or {}).get("seq", 1)
