"""
Static fallback tables used when the database has no matching rows.

Invoices are demo data shared by every user; support articles cover the
questions customers ask most when the knowledge base is empty or unreachable.
"""

from __future__ import annotations

import copy

from typing import Any

#: Demo invoices keyed by invoice number.
MOCK_INVOICES: dict[str, dict[str, Any]] = {
    "INV-2024-001": {
        "invoice_number": "INV-2024-001",
        "amount": 120.5,
        "status": "paid",
        "created_at": "2024-01-15T10:00:00+00:00",
        "due_date": "2024-01-29T10:00:00+00:00",
        "items": [{"description": "Annual Subscription", "quantity": 1, "price": 120.5}],
        "refund_status": "none",
        "payment_method": "Visa ending 4242",
    },
    "INV-2024-002": {
        "invoice_number": "INV-2024-002",
        "amount": 45.0,
        "status": "paid",
        "created_at": "2024-02-10T14:30:00+00:00",
        "due_date": "2024-02-24T14:30:00+00:00",
        "items": [{"description": "Support Add-on", "quantity": 1, "price": 45.0}],
        "refund_status": "none",
        "payment_method": "Visa ending 4242",
    },
    "INV-2024-003": {
        "invoice_number": "INV-2024-003",
        "amount": 250.0,
        "status": "pending",
        "created_at": "2024-03-05T09:15:00+00:00",
        "due_date": "2024-03-19T09:15:00+00:00",
        "items": [{"description": "Enterprise License", "quantity": 1, "price": 250.0}],
        "refund_status": "none",
        "payment_method": "Mastercard ending 8888",
    },
}


class FallbackInvoiceTable:
    """Mutable in-memory copy of the demo invoices.

    Refund requests against demo invoices update this table for the lifetime
    of the process; nothing is written to the database.
    """

    def __init__(self, invoices: dict[str, dict[str, Any]] | None = None):
        self._invoices = copy.deepcopy(invoices if invoices is not None else MOCK_INVOICES)

    def get(self, invoice_number: str) -> dict[str, Any] | None:
        invoice = self._invoices.get(invoice_number)
        return dict(invoice) if invoice else None

    def all(self) -> list[dict[str, Any]]:
        return [dict(invoice) for invoice in self._invoices.values()]

    def latest(self) -> dict[str, Any] | None:
        invoices = sorted(self._invoices.values(), key=lambda i: i["created_at"], reverse=True)
        return dict(invoices[0]) if invoices else None

    def set_refund_status(self, invoice_number: str, refund_status: str) -> None:
        self._invoices[invoice_number]["refund_status"] = refund_status


#: Help-center articles served when the support_articles table cannot answer.
FALLBACK_ARTICLES: tuple[dict[str, Any], ...] = (
    {
        "id": "fallback_001",
        "title": "Return & Refund Policy",
        "category": "billing",
        "tags": ["refund", "return", "policy", "money back"],
        "content": (
            "We offer a 30-day return policy for most items. To initiate a return:\n"
            "1. Contact support within 30 days of delivery\n"
            "2. Provide your order number and reason for return\n"
            "3. We'll send you a return label via email\n"
            "4. Ship the item back using our prepaid label\n"
            "5. Refunds are processed within 5-7 business days after we receive the item\n"
            "\n"
            "Items must be in original condition with tags attached."
        ),
    },
    {
        "id": "fallback_002",
        "title": "Shipping Information",
        "category": "orders",
        "tags": ["shipping", "delivery", "time", "cost"],
        "content": (
            "Standard shipping takes 5-7 business days. Express shipping takes 2-3 business days. \n"
            "Free shipping is available on orders over $100. "
            "International shipping may take up to 14 days depending on customs."
        ),
    },
    {
        "id": "fallback_003",
        "title": "Payment Methods",
        "category": "billing",
        "tags": ["payment", "card", "paypal", "apple pay"],
        "content": (
            "We accept Visa, Mastercard, American Express, PayPal, and Apple Pay. We do not accept cash on delivery."
        ),
    },
    {
        "id": "fallback_004",
        "title": "How to Track Order",
        "category": "orders",
        "tags": ["track", "tracking", "where is my order"],
        "content": (
            'Log in to your account and go to "My Orders". Click on the order to view its tracking status and number.'
        ),
    },
)


def search_fallback_articles(query: str, limit: int) -> list[dict[str, Any]]:
    """Case-insensitive match on title, content or tags."""
    needle = query.lower()
    matches = [
        dict(article)
        for article in FALLBACK_ARTICLES
        if needle in article["title"].lower()
        or needle in article["content"].lower()
        or any(needle in tag for tag in article["tags"])
    ]
    return matches[:limit]


def get_fallback_article(article_id: str) -> dict[str, Any] | None:
    for article in FALLBACK_ARTICLES:
        if article["id"] == article_id:
            return dict(article)
    return None


def fallback_articles_by_category(category: str) -> list[dict[str, Any]]:
    """Summaries (id, title, category) of articles in an exact category."""
    wanted = category.lower()
    return [
        {"id": a["id"], "title": a["title"], "category": a["category"]}
        for a in FALLBACK_ARTICLES
        if a["category"].lower() == wanted
    ]
