from __future__ import annotations

import pytest

from src.application.notifications.factory import (
    ORDER_STATUS_TEMPLATES,
    order_created_notification,
    order_status_notification,
    support_reply_notification,
)


@pytest.mark.parametrize("status", sorted(ORDER_STATUS_TEMPLATES))
def test_every_status_has_bilingual_text(status):
    built = order_status_notification(
        order_id=1, order_number="ORD-1", new_status=status, old_status="pending"
    )

    assert built is not None
    assert "ORD-1" in built.content.message_en
    assert "ORD-1" in built.content.message_ar
    assert built.content.type == "order"
    assert built.data == {
        "order_id": "1",
        "order_number": "ORD-1",
        "status": status,
        "old_status": "pending",
    }


def test_unchanged_or_unknown_status_yields_nothing():
    assert (
        order_status_notification(
            order_id=1, order_number="ORD-1", new_status="ready", old_status="ready"
        )
        is None
    )
    assert (
        order_status_notification(
            order_id=1, order_number="ORD-1", new_status="refunded", old_status="ready"
        )
        is None
    )


def test_order_created_wording_depends_on_creator():
    customer = order_created_notification(order_id=3, order_number="ORD-3", total_amount="12.50")
    admin = order_created_notification(
        order_id=3, order_number="ORD-3", total_amount="12.50", created_by_admin=True
    )

    assert customer.content.title_en == "Order Confirmation"
    assert "Total: 12.50 JOD" in customer.content.message_en
    assert customer.data["created_by"] == "customer"
    assert admin.content.title_en == "New Order Created by Our Team"
    assert admin.data["created_by"] == "admin"


def test_support_reply_direction():
    to_client = support_reply_notification(ticket_id=9, from_admin=True)
    to_admins = support_reply_notification(ticket_id=9, from_admin=False)

    assert to_client.data["event"] == "admin_reply"
    assert to_admins.data["event"] == "client_reply"
    assert to_client.content.type == "support"
