# models.py
import hashlib
import warnings
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from dates import iso8601_string, utc_now


def sha256_hex(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def _compact(d: Dict[str, Any]) -> Dict[str, Any]:
    # 缺省字段不上送
    return {k: v for k, v in d.items() if v is not None}


@dataclass
class Customer:
    """
    The customer related to an order.

    email_sha256: SHA-256 of the lowercased email, 64 hex chars. Either set
    it directly or call set_email() and it is hashed for you.
    """
    id: Optional[str] = None
    email_sha256: Optional[str] = None
    advertising_id: Optional[str] = None

    def set_email(self, email: str) -> None:
        self.email_sha256 = sha256_hex(email.lower())

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "id": self.id,
            "email_sha256": self.email_sha256,
            "advertising_id": self.advertising_id,
        })


@dataclass
class LineItem:
    id: str
    total: int  # 最小货币单位，3999 = $39.99
    quantity: int = 1
    description: Optional[str] = None
    sku: Optional[str] = None
    upc: Optional[str] = None
    category: Optional[List[str]] = None
    attributes: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "id": self.id,
            "total": self.total,
            "quantity": self.quantity,
            "description": self.description,
            "sku": self.sku,
            "upc": self.upc,
            "category": list(self.category) if self.category is not None else None,
            "attributes": dict(self.attributes) if self.attributes is not None else None,
        })


@dataclass
class Order:
    id: str
    purchase_date: datetime
    line_items: List[LineItem] = field(default_factory=list)
    currency_code: str = "USD"
    customer_order_id: Optional[str] = None
    customer: Customer = field(default_factory=Customer)
    amount: int = 0  # deprecated, kept for the legacy wire field

    @classmethod
    def with_amount(cls, id: str, amount: int = 0, currency_code: str = "USD") -> "Order":
        warnings.warn(
            "Order.with_amount is deprecated, use Order(id, purchase_date, line_items)",
            DeprecationWarning,
            stacklevel=2,
        )
        return cls(id=id, purchase_date=utc_now(), currency_code=currency_code, amount=amount)

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "order_id": self.id,
            "amount": self.amount,
            "currency": self.currency_code,
            "purchase_date": iso8601_string(self.purchase_date),
            "customer_order_id": self.customer_order_id,
            "line_items": [li.to_dict() for li in self.line_items],
            "customer": self.customer.to_dict(),
        })
