from __future__ import annotations

import logging

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    Query,
    Request,
    WebSocket,
    WebSocketDisconnect,
    status,
)

from src.application.errors import AuthError, InfrastructureError, NotFound, ValidationError
from src.application.events.dispatcher import dispatch_events
from src.application.events.models import (
    OrderCreatedEvent,
    OrderStatusChangedEvent,
    SupportReplyEvent,
    SupportTicketCreatedEvent,
)
from src.application.notifications.types import NotificationType
from src.application.pagination import PageRequest
from src.application.use_cases.notifications import dispatch_notification
from src.domain.models.device_token import mask_token
from src.infrastructure.auth.context import AuthContext, context_from_claims
from src.infrastructure.db.session import SQLAlchemyUnitOfWork
from src.infrastructure.push.fcm_v1 import FCMv1Client
from src.infrastructure.push.results import PushMessage
from src.infrastructure.services.notification_service import NotificationService
from src.infrastructure.services.token_registry import TokenRegistry
from src.infrastructure.websocket.connection_manager import ConnectionManager, parse_client_frame
from src.interfaces.http.deps import (
    get_auth_context,
    get_connection_manager,
    get_notification_service,
    get_push_client,
    get_token_registry,
    get_uow,
    require_elevated,
)
from src.interfaces.http.schemas.notifications import (
    DeliveryLogListResponse,
    DeliveryLogSchema,
    DeviceTokenListResponse,
    DeviceTokenSchema,
    DomainEventRequest,
    MarkAsReadResponse,
    NotificationListResponse,
    NotificationSchema,
    RegisterTokenRequest,
    SendNotificationRequest,
    StatusResponse,
    UnreadCountResponse,
    UnregisterTokenRequest,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])
logger = logging.getLogger(__name__)

WS_POLICY_VIOLATION = 1008
WS_HANDSHAKE_ERROR = 1011


def _bearer_from_websocket(websocket: WebSocket) -> str | None:
    token = websocket.query_params.get("token")
    if token:
        return token
    scheme, _, value = (websocket.headers.get("authorization") or "").partition(" ")
    if scheme.lower() == "bearer" and value:
        return value
    return None


async def _close_quietly(websocket: WebSocket, code: int) -> None:
    try:
        await websocket.close(code=code)
    except Exception as e:
        logger.debug("Closing WebSocket after failed handshake failed: %s", e)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """
    Live notifications. Authenticate with ``?token=<jwt>`` or an ``Authorization: Bearer`` header.
    Frames are JSON ``{"event": name, "data": payload}``.
    """
    manager = websocket.app.state.connection_manager
    origin = websocket.headers.get("origin")
    try:
        token = _bearer_from_websocket(websocket)
        if not token:
            raise AuthError("Missing access token")
        jwt_service = websocket.app.state.jwt_service
        context = context_from_claims(jwt_service.decode_access(token))
    except AuthError as e:
        logger.warning(
            "WebSocket authentication failed: origin=%s code=%s reason=%s",
            origin,
            WS_POLICY_VIOLATION,
            e.message,
        )
        await websocket.close(code=WS_POLICY_VIOLATION, reason="Authentication failed")
        return

    try:
        session = await manager.connect(websocket, context.user_id, context.role)
    except Exception as e:
        logger.error(
            "WebSocket handshake failed: origin=%s user=%s code=%s error=%s",
            origin,
            context.user_id,
            WS_HANDSHAKE_ERROR,
            e,
            exc_info=True,
        )
        await _close_quietly(websocket, WS_HANDSHAKE_ERROR)
        return

    try:
        while True:
            raw = await websocket.receive_text()
            event, data = parse_client_frame(raw)
            await manager.handle_event(session, event, data)
    except WebSocketDisconnect as e:
        logger.info("WebSocket client disconnected: user=%s code=%s", context.user_id, e.code)
    except Exception as e:
        logger.error("WebSocket error for user=%s: %s", context.user_id, e, exc_info=True)
    finally:
        manager.disconnect(session)


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    page: int = 1,
    limit: int = 20,
    admin: bool = False,
    type: str | None = None,
    unread_only: bool = False,
    context: AuthContext = Depends(get_auth_context),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationListResponse:
    """Caller's notifications; elevated callers may pass ``admin=true`` for the admin inbox."""
    page_request = PageRequest.sanitize(page, limit)
    if admin:
        context.require_elevated(service.connection_manager.is_elevated)
        items, pagination = await service.list_admin(
            page_request, type=_type_filter(type), unread_only=unread_only
        )
        unread = await service.admin_unread_count()
    else:
        items, pagination = await service.list_for_user(context.user_id, page_request)
        unread = await service.unread_count(context.user_id)
    return NotificationListResponse(
        notifications=[NotificationSchema.model_validate(n) for n in items],
        pagination=pagination,
        unread_count=unread,
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    admin: bool = False,
    context: AuthContext = Depends(get_auth_context),
    service: NotificationService = Depends(get_notification_service),
) -> UnreadCountResponse:
    if admin:
        context.require_elevated(service.connection_manager.is_elevated)
        return UnreadCountResponse(unread_count=await service.admin_unread_count())
    return UnreadCountResponse(unread_count=await service.unread_count(context.user_id))


@router.post("/read-all", response_model=MarkAsReadResponse)
async def mark_all_as_read(
    context: AuthContext = Depends(get_auth_context),
    service: NotificationService = Depends(get_notification_service),
) -> MarkAsReadResponse:
    return MarkAsReadResponse(marked_count=await service.mark_all_as_read(context.user_id))


@router.post("/{notification_id}/read", response_model=MarkAsReadResponse)
async def mark_as_read(
    notification_id: int,
    context: AuthContext = Depends(get_auth_context),
    service: NotificationService = Depends(get_notification_service),
) -> MarkAsReadResponse:
    affected = await service.mark_as_read(notification_id, context.user_id)
    if not affected:
        raise NotFound("Notification not found")
    return MarkAsReadResponse(marked_count=affected)


@router.post("/register-token", response_model=StatusResponse)
async def register_token(
    payload: RegisterTokenRequest,
    context: AuthContext = Depends(get_auth_context),
    registry: TokenRegistry = Depends(get_token_registry),
) -> StatusResponse:
    await registry.register(
        context.user_id,
        payload.token,
        payload.platform,
        device_id=payload.device_id,
        app_version=payload.app_version,
    )
    return StatusResponse(status="ok", message="Token registered")


@router.delete("/unregister-token", response_model=StatusResponse)
async def unregister_token(
    payload: UnregisterTokenRequest,
    _: AuthContext = Depends(get_auth_context),
    registry: TokenRegistry = Depends(get_token_registry),
) -> StatusResponse:
    await registry.unregister(payload.token)
    return StatusResponse(status="ok", message="Token unregistered")


@router.post("/self-test", response_model=StatusResponse)
async def self_test(
    context: AuthContext = Depends(get_auth_context),
    registry: TokenRegistry = Depends(get_token_registry),
    push_client: FCMv1Client = Depends(get_push_client),
) -> StatusResponse:
    """Push a test message to the caller's most recently used active token."""
    device = await registry.latest_active_token_for(context.user_id)
    if device is None:
        raise ValidationError("No active push token found for this user")
    logger.info("Self-test push: user=%s token=%s", context.user_id, mask_token(device.token))
    result = await push_client.send_to_token(
        device.token,
        PushMessage(title="Test Notification", body="This is a self-test push to your device."),
        {"type": NotificationType.TEST, "source": "self-test"},
    )
    if not result.success:
        logger.warning("Self-test failed: user=%s error=%s", context.user_id, result.error)
        raise InfrastructureError(
            "Failed to send test notification", details={"error": result.error}
        )
    return StatusResponse(status="ok", message="Test notification sent")


# -- admin --


@router.get("/admin/all", response_model=NotificationListResponse)
async def admin_list_all(
    page: int = 1,
    limit: int = 20,
    type: str | None = None,
    user_id: int | None = None,
    _: AuthContext = Depends(require_elevated),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationListResponse:
    items, pagination = await service.list_all(
        PageRequest.sanitize(page, limit), type=_type_filter(type), user_id=user_id
    )
    return NotificationListResponse(
        notifications=[NotificationSchema.model_validate(n) for n in items],
        pagination=pagination,
    )


@router.post("/admin/send")
async def admin_send(
    payload: SendNotificationRequest,
    context: AuthContext = Depends(require_elevated),
    service: NotificationService = Depends(get_notification_service),
) -> dict:
    logger.info(
        "Admin dispatch: actor=%s mode=%s type=%s", context.user_id, payload.target_mode, payload.type
    )
    result = await dispatch_notification.execute(
        service,
        dispatch_notification.DispatchNotificationInput(
            target_mode=payload.target_mode,
            target=payload.target,
            title_ar=payload.title_ar,
            title_en=payload.title_en,
            message_ar=payload.message_ar,
            message_en=payload.message_en,
            type=payload.type,
            data=payload.data,
            image=payload.image,
            save_to_db=payload.save_to_db,
        ),
    )
    return result.to_dict()


@router.get("/admin/stats")
async def admin_stats(
    days: int = Query(7, ge=1, le=365),
    _: AuthContext = Depends(require_elevated),
    service: NotificationService = Depends(get_notification_service),
) -> dict:
    return await service.stats(days)


@router.get("/admin/logs", response_model=DeliveryLogListResponse)
async def admin_logs(
    page: int = 1,
    limit: int = 50,
    status_filter: str | None = Query(None, alias="status"),
    user_id: int | None = None,
    notification_id: int | None = None,
    _: AuthContext = Depends(require_elevated),
    uow: SQLAlchemyUnitOfWork = Depends(get_uow),
) -> DeliveryLogListResponse:
    page_request = PageRequest.sanitize(page, limit, default_limit=50)
    logs, total = await uow.notification_logs.list_logs(
        status=status_filter,
        notification_id=notification_id,
        user_id=user_id,
        limit=page_request.limit,
        offset=page_request.offset,
    )
    return DeliveryLogListResponse(
        logs=[DeliveryLogSchema.model_validate(entry) for entry in logs],
        pagination=page_request.describe(total),
    )


@router.get("/admin/tokens", response_model=DeviceTokenListResponse)
async def admin_tokens(
    page: int = 1,
    limit: int = 50,
    platform: str | None = None,
    is_active: bool | None = None,
    _: AuthContext = Depends(require_elevated),
    uow: SQLAlchemyUnitOfWork = Depends(get_uow),
) -> DeviceTokenListResponse:
    page_request = PageRequest.sanitize(page, limit, default_limit=50)
    tokens, total = await uow.device_tokens.list_tokens(
        platform=platform,
        is_active=is_active,
        limit=page_request.limit,
        offset=page_request.offset,
    )
    return DeviceTokenListResponse(
        tokens=[
            DeviceTokenSchema.model_validate(t).model_copy(update={"token": t.masked})
            for t in tokens
        ],
        pagination=page_request.describe(total),
    )


@router.post("/admin/events", status_code=status.HTTP_202_ACCEPTED, response_model=StatusResponse)
async def admin_publish_event(
    payload: DomainEventRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    _: AuthContext = Depends(require_elevated),
    uow: SQLAlchemyUnitOfWork = Depends(get_uow),
    push_client: FCMv1Client = Depends(get_push_client),
    manager: ConnectionManager = Depends(get_connection_manager),
) -> StatusResponse:
    """Accept an order/support event and fan it out after the response is sent."""
    uow.add_event(_build_event(payload))
    events = uow.drain_events()

    # Dispatch in background with a fresh unit of work
    session_factory = request.app.state.session_factory
    background_tasks.add_task(
        dispatch_events,
        session_factory,
        events,
        push_client=push_client,
        connection_manager=manager,
    )
    return StatusResponse(status="accepted", message=payload.event)


def _build_event(payload: DomainEventRequest) -> object:
    if payload.event in ("order_created", "order_status_changed"):
        if payload.order_id is None or not payload.order_number:
            raise ValidationError("order_id and order_number are required for order events")
        if payload.event == "order_created":
            return OrderCreatedEvent(
                order_id=payload.order_id,
                order_number=payload.order_number,
                user_id=payload.user_id,
                total_amount=payload.total_amount,
                order_type=payload.order_type,
                payment_method=payload.payment_method,
                created_by_admin=payload.created_by_admin,
                payload=payload.payload,
            )
        if not payload.new_status:
            raise ValidationError("new_status is required for order_status_changed")
        return OrderStatusChangedEvent(
            order_id=payload.order_id,
            order_number=payload.order_number,
            user_id=payload.user_id,
            new_status=payload.new_status,
            old_status=payload.old_status,
            payload=payload.payload,
        )
    if payload.ticket_id is None:
        raise ValidationError("ticket_id is required for support events")
    if payload.event == "support_ticket_created":
        return SupportTicketCreatedEvent(
            ticket_id=payload.ticket_id, user_id=payload.user_id, subject=payload.subject
        )
    return SupportReplyEvent(
        ticket_id=payload.ticket_id,
        ticket_owner_id=payload.user_id,
        from_admin=payload.from_admin,
    )


def _type_filter(value: str | None) -> str | None:
    return None if not value or value == "all" else value
