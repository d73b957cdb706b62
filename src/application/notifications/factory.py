from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from src.domain.models.notification import LocalizedContent

from .types import NotificationType


@dataclass
class BuiltNotification:
    content: LocalizedContent
    data: dict[str, Any]


# (title_en, title_ar, message_en, message_ar); messages take {order_number}
ORDER_STATUS_TEMPLATES: dict[str, tuple[str, str, str, str]] = {
    "confirmed": (
        "Order Confirmed",
        "تم تأكيد الطلب",
        "Your order #{order_number} has been confirmed and is being prepared.",
        "تم تأكيد طلبك رقم #{order_number} وجاري تحضيره.",
    ),
    "preparing": (
        "Order Being Prepared",
        "جاري تحضير الطلب",
        "Your order #{order_number} is being prepared in our kitchen.",
        "جاري تحضير طلبك رقم #{order_number} في مطبخنا.",
    ),
    "ready": (
        "Order Ready",
        "الطلب جاهز",
        "Your order #{order_number} is ready!",
        "طلبك رقم #{order_number} جاهز!",
    ),
    "ready_for_pickup": (
        "Order Ready for Pickup",
        "الطلب جاهز للاستلام",
        "Your order #{order_number} is ready for pickup!",
        "طلبك رقم #{order_number} جاهز للاستلام!",
    ),
    "out_for_delivery": (
        "Order Out for Delivery",
        "الطلب في الطريق",
        "Your order #{order_number} is out for delivery and will arrive soon.",
        "طلبك رقم #{order_number} في الطريق وسيصل قريباً.",
    ),
    "delivered": (
        "Order Delivered",
        "تم توصيل الطلب",
        "Your order #{order_number} has been delivered. Enjoy your meal!",
        "تم توصيل طلبك رقم #{order_number}. نتمنى لك وجبة شهية!",
    ),
    "cancelled": (
        "Order Cancelled",
        "تم إلغاء الطلب",
        "Your order #{order_number} has been cancelled.",
        "تم إلغاء طلبك رقم #{order_number}.",
    ),
}


def order_status_notification(
    *, order_id: int, order_number: str, new_status: str, old_status: str | None
) -> BuiltNotification | None:
    """Customer-facing message for a status change, or None when there is nothing to say."""
    if new_status == old_status:
        return None
    template = ORDER_STATUS_TEMPLATES.get(new_status)
    if template is None:
        return None
    title_en, title_ar, message_en, message_ar = template
    content = LocalizedContent(
        title_ar=title_ar,
        title_en=title_en,
        message_ar=message_ar.format(order_number=order_number),
        message_en=message_en.format(order_number=order_number),
        type=NotificationType.ORDER,
    )
    data = {
        "order_id": str(order_id),
        "order_number": order_number,
        "status": new_status,
        "old_status": old_status,
    }
    return BuiltNotification(content, data)


def order_created_notification(
    *,
    order_id: int,
    order_number: str,
    total_amount: Any,
    order_type: str | None = None,
    payment_method: str | None = None,
    created_by_admin: bool = False,
    currency_en: str = "JOD",
    currency_ar: str = "دينار",
) -> BuiltNotification:
    if created_by_admin:
        content = LocalizedContent(
            title_ar="تم إنشاء طلب جديد من قبل فريقنا",
            title_en="New Order Created by Our Team",
            message_ar=(
                f"تم إنشاء طلبك رقم #{order_number} من قبل فريقنا. "
                f"المجموع: {total_amount} {currency_ar}"
            ),
            message_en=(
                f"Your order #{order_number} has been created by our team. "
                f"Total: {total_amount} {currency_en}"
            ),
            type=NotificationType.ORDER,
        )
    else:
        content = LocalizedContent(
            title_ar="تأكيد الطلب",
            title_en="Order Confirmation",
            message_ar=f"شكراً لك! تم استلام طلبك رقم #{order_number}. المجموع: {total_amount} {currency_ar}",
            message_en=(
                f"Thank you! Your order #{order_number} has been received. "
                f"Total: {total_amount} {currency_en}"
            ),
            type=NotificationType.ORDER,
        )
    data = {
        "order_id": str(order_id),
        "order_number": order_number,
        "total_amount": str(total_amount),
        "order_type": order_type,
        "created_by": "admin" if created_by_admin else "customer",
        "payment_method": payment_method,
    }
    return BuiltNotification(content, {k: v for k, v in data.items() if v is not None})


def support_ticket_notification(*, ticket_id: int, subject: str | None = None) -> BuiltNotification:
    label = f" ({subject})" if subject else ""
    return BuiltNotification(
        LocalizedContent(
            title_ar="تذكرة دعم جديدة",
            title_en="New Support Ticket",
            message_ar=f"تم فتح تذكرة دعم جديدة رقم #{ticket_id}{label}",
            message_en=f"A new support ticket #{ticket_id} was opened{label}",
            type=NotificationType.SUPPORT,
        ),
        {"ticket_id": str(ticket_id), "event": "new_ticket"},
    )


def support_reply_notification(*, ticket_id: int, from_admin: bool) -> BuiltNotification:
    if from_admin:
        content = LocalizedContent(
            title_ar="رد جديد على تذكرتك",
            title_en="New Reply to Your Ticket",
            message_ar=f"قام فريق الدعم بالرد على تذكرتك رقم #{ticket_id}",
            message_en=f"Our support team replied to your ticket #{ticket_id}",
            type=NotificationType.SUPPORT,
        )
    else:
        content = LocalizedContent(
            title_ar="رد جديد من العميل",
            title_en="New Customer Reply",
            message_ar=f"قام العميل بالرد على التذكرة رقم #{ticket_id}",
            message_en=f"The customer replied to ticket #{ticket_id}",
            type=NotificationType.SUPPORT,
        )
    return BuiltNotification(
        content,
        {"ticket_id": str(ticket_id), "event": "admin_reply" if from_admin else "client_reply"},
    )
