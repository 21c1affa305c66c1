"""
orders.notifications

Order-placed emails (customer + vendor).

Sent from `transaction.on_commit` so a rolled-back order never mails anyone.
Uses Django's email API; the backend is whatever EMAIL_BACKEND says
(anymail in production, locmem in tests).

ENV/SETTINGS
- DEFAULT_FROM_EMAIL (recommended)
- FOODMARKET_SUPPORT_EMAIL (optional, appended to the customer email)

========= CHANGE LOG =========
2026-09-02 • CHANGE: failures are logged, never raised (order already committed).  # CHANGED:
2026-08-21 • ADD: send_order_placed_emails() using EmailMultiAlternatives (text + HTML).
"""

from __future__ import annotations

import logging
import os
from html import escape
from typing import List

from django.conf import settings
from django.core.mail import EmailMultiAlternatives

log = logging.getLogger("foodmarket")


def _from_email() -> str:
    return (
        getattr(settings, "DEFAULT_FROM_EMAIL", "")
        or getattr(settings, "SERVER_EMAIL", "")
        or "no-reply@localhost"
    )


def _support_email() -> str:
    return (os.environ.get("FOODMARKET_SUPPORT_EMAIL") or "").strip()


def _line_summary(order) -> List[str]:
    return [f"{line.quantity} x {line.food_item_name}  {line.line_subtotal}" for line in order.lines.all()]


def _send(to_email: str, subject: str, text_lines: List[str]) -> None:
    text_body = "\n".join(text_lines)
    html_body = "<br>".join(escape(l) for l in text_lines)
    msg = EmailMultiAlternatives(
        subject=subject,
        body=text_body,
        from_email=_from_email(),
        to=[to_email],
    )
    msg.attach_alternative(
        f'<html><body style="font-family: Arial, sans-serif; line-height: 1.5;">{html_body}</body></html>',
        "text/html",
    )
    msg.send(fail_silently=False)


def send_order_placed_emails(order) -> int:
    """Returns how many emails went out."""
    summary = _line_summary(order)
    totals = [
        "",
        f"Subtotal: {order.subtotal}",
        f"Delivery fee: {order.delivery_fee}",
        f"Tax: {order.tax}",
        f"Total: {order.total}",
    ]

    outgoing = []
    customer_email = ((order.delivery_address or {}).get("email") or "").strip()
    if customer_email:
        lines = [f"Thanks for your order {order.order_number}!", ""] + summary + totals
        support = _support_email()
        if support:
            lines += ["", f"Need help? Contact: {support}"]
        outgoing.append((customer_email, f"Order {order.order_number} placed", lines))

    vendor_email = (order.vendor.contact_email or "").strip()
    if vendor_email:
        lines = [f"New order {order.order_number} ({order.payment_method}).", ""] + summary + totals
        if order.special_instructions:
            lines += ["", f"Instructions: {order.special_instructions}"]
        outgoing.append((vendor_email, f"New order {order.order_number}", lines))

    sent = 0
    for to_email, subject, lines in outgoing:
        try:
            _send(to_email, subject, lines)
            sent += 1
        except Exception as e:
            log.warning(
                "[orders][email] order-placed email failed order=%s err=%s",
                order.order_number, e.__class__.__name__,
            )
    return sent
