from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class NotificationSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int | None = None
    title_ar: str
    title_en: str
    message_ar: str
    message_en: str
    type: str
    data: dict[str, Any] | None = None
    is_read: bool
    created_at: datetime
    read_at: datetime | None = None


class PaginationSchema(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class NotificationListResponse(BaseModel):
    notifications: list[NotificationSchema]
    pagination: PaginationSchema
    unread_count: int | None = None


class UnreadCountResponse(BaseModel):
    unread_count: int


class MarkAsReadResponse(BaseModel):
    marked_count: int


class RegisterTokenRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=1024)
    platform: Literal["android", "ios", "web"] = "android"
    device_id: str | None = Field(None, max_length=255)
    app_version: str | None = Field(None, max_length=50)


class UnregisterTokenRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=1024)


class StatusResponse(BaseModel):
    status: str
    message: str | None = None


class SendNotificationRequest(BaseModel):
    # Left loose so targeting errors surface as invalid_target rather than schema errors
    target_mode: str = Field(..., alias="recipient_type")
    target: Any = Field(None, alias="recipient_id")
    title_ar: str = ""
    title_en: str = ""
    message_ar: str = ""
    message_en: str = ""
    type: str = "general"
    data: dict[str, Any] | None = None
    image: str | None = None
    save_to_db: bool = True

    model_config = ConfigDict(populate_by_name=True)


class DomainEventRequest(BaseModel):
    event: Literal["order_created", "order_status_changed", "support_ticket_created", "support_reply"]
    order_id: int | None = None
    order_number: str | None = None
    user_id: int | None = None
    total_amount: Any = None
    order_type: str | None = None
    payment_method: str | None = None
    created_by_admin: bool = False
    new_status: str | None = None
    old_status: str | None = None
    ticket_id: int | None = None
    subject: str | None = None
    from_admin: bool = False
    payload: dict[str, Any] = Field(default_factory=dict)


class DeviceTokenSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    token: str
    platform: str
    device_id: str | None = None
    app_version: str | None = None
    is_active: bool
    last_used_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class DeviceTokenListResponse(BaseModel):
    tokens: list[DeviceTokenSchema]
    pagination: PaginationSchema


class DeliveryLogSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    notification_id: int | None = None
    user_id: int | None = None
    target: str
    title_en: str
    message_en: str
    channel: str
    delivery_status: str
    provider_message_id: str | None = None
    error_message: str | None = None
    data: dict[str, Any] | None = None
    sent_at: datetime | None = None
    created_at: datetime


class DeliveryLogListResponse(BaseModel):
    logs: list[DeliveryLogSchema]
    pagination: PaginationSchema
