"""
Admin newsletter API endpoints.

Endpoints:
- GET /api/admin/newsletter/settings - Settings plus subscriber stats
- PUT /api/admin/newsletter/settings - Partial settings update
- GET /api/admin/newsletter/subscribers - List subscribers (tokens hidden)
- GET /api/admin/newsletter/deliveries - Delivery history
- POST /api/admin/newsletter/send - Manual send
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from src.api.deps import get_current_actor, get_newsletter_service
from src.core.entities import Actor, ContentOwner, Subscriber, SubscriberStatus
from src.core.errors import (
    DeliveryRecordError,
    NewsletterDisabledError,
    OwnerNotFoundError,
)
from src.services.newsletter import NewsletterService

router = APIRouter()


# --- Request/Response Models ---


class SettingsResponse(BaseModel):
    newsletter_enabled: bool
    send_mode: str
    frequency: str
    newsletter_title: str | None
    newsletter_description: str | None
    from_name: str | None
    from_email: str | None
    last_digest_sent_at: str | None
    stats: dict[str, int]


class SettingsUpdateRequest(BaseModel):
    """Only the fields present in the request body are applied."""

    newsletter_enabled: Any = None
    send_mode: str | None = None
    frequency: str | None = None
    newsletter_title: str | None = None
    newsletter_description: str | None = None
    from_name: str | None = None
    from_email: str | None = None


class SubscriberResponse(BaseModel):
    """Newsletter subscriber (tokens are never exposed)."""

    id: str
    email: str
    status: str
    subscribed_at: str
    verified_at: str | None = None
    unsubscribed_at: str | None = None


class SubscriberListResponse(BaseModel):
    subscribers: list[SubscriberResponse]
    total: int


class DeliveryResponse(BaseModel):
    id: str
    subject: str
    status: str
    subscriber_count: int
    success_count: int
    failure_count: int
    sent_at: str
    completed_at: str | None
    items: list[dict[str, str]]
    errors: list[dict[str, Any]]


class DeliveryListResponse(BaseModel):
    deliveries: list[DeliveryResponse]


class SendRequest(BaseModel):
    owner_id: UUID | None = Field(None, description="Defaults to the caller")
    item_ids: list[UUID] | None = Field(None, description="Empty or omitted means automatic mode")


class ErrorResponse(BaseModel):
    detail: str


# --- Helper Functions ---


def _settings_response(owner: ContentOwner, stats: dict[str, int]) -> SettingsResponse:
    return SettingsResponse(
        newsletter_enabled=owner.newsletter_enabled,
        send_mode=owner.send_mode,
        frequency=owner.frequency,
        newsletter_title=owner.newsletter_title,
        newsletter_description=owner.newsletter_description,
        from_name=owner.from_name,
        from_email=owner.from_email,
        last_digest_sent_at=(
            owner.last_digest_sent_at.isoformat() if owner.last_digest_sent_at else None
        ),
        stats=stats,
    )


def _subscriber_to_response(subscriber: Subscriber) -> SubscriberResponse:
    return SubscriberResponse(
        id=str(subscriber.id),
        email=subscriber.email,
        status=subscriber.status.value,
        subscribed_at=subscriber.subscribed_at.isoformat(),
        verified_at=subscriber.verified_at.isoformat() if subscriber.verified_at else None,
        unsubscribed_at=(
            subscriber.unsubscribed_at.isoformat() if subscriber.unsubscribed_at else None
        ),
    )


def _owner_id(actor: Actor) -> UUID:
    if actor.user_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="owner_id is required")
    return actor.user_id


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, PermissionError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if isinstance(e, OwnerNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Owner not found")
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


# --- Endpoints ---


@router.get(
    "/settings",
    response_model=SettingsResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Get newsletter settings",
)
def get_settings(
    actor: Actor = Depends(get_current_actor),
    service: NewsletterService = Depends(get_newsletter_service),
) -> SettingsResponse:
    try:
        settings = service.get_settings(actor, _owner_id(actor))
    except (PermissionError, OwnerNotFoundError) as e:
        raise _http_error(e) from e
    return _settings_response(settings.owner, settings.stats)


@router.put(
    "/settings",
    response_model=SettingsResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
    summary="Update newsletter settings",
)
def update_settings(
    body: SettingsUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    service: NewsletterService = Depends(get_newsletter_service),
) -> SettingsResponse:
    owner_id = _owner_id(actor)
    try:
        service.update_settings(actor, owner_id, body.model_dump(exclude_unset=True))
        settings = service.get_settings(actor, owner_id)
    except (PermissionError, OwnerNotFoundError, ValueError) as e:
        raise _http_error(e) from e
    return _settings_response(settings.owner, settings.stats)


@router.get(
    "/subscribers",
    response_model=SubscriberListResponse,
    responses={401: {"model": ErrorResponse}},
    summary="List newsletter subscribers",
)
def list_subscribers(
    status_filter: SubscriberStatus | None = Query(None, alias="status", description="Filter by status"),
    actor: Actor = Depends(get_current_actor),
    service: NewsletterService = Depends(get_newsletter_service),
) -> SubscriberListResponse:
    try:
        subscribers = service.list_subscribers(actor, _owner_id(actor), status_filter)
    except (PermissionError, OwnerNotFoundError) as e:
        raise _http_error(e) from e
    return SubscriberListResponse(
        subscribers=[_subscriber_to_response(s) for s in subscribers],
        total=len(subscribers),
    )


@router.get(
    "/deliveries",
    response_model=DeliveryListResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Delivery history",
)
def list_deliveries(
    actor: Actor = Depends(get_current_actor),
    service: NewsletterService = Depends(get_newsletter_service),
) -> DeliveryListResponse:
    try:
        views = service.list_deliveries(actor, _owner_id(actor))
    except (PermissionError, OwnerNotFoundError) as e:
        raise _http_error(e) from e
    return DeliveryListResponse(
        deliveries=[
            DeliveryResponse(
                id=str(v.record.id),
                subject=v.record.subject,
                status=v.record.status.value,
                subscriber_count=v.record.subscriber_count,
                success_count=v.record.success_count,
                failure_count=v.record.failure_count,
                sent_at=v.record.sent_at.isoformat(),
                completed_at=v.record.completed_at.isoformat() if v.record.completed_at else None,
                items=v.items,
                errors=v.errors,
            )
            for v in views
        ]
    )


@router.post(
    "/send",
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    summary="Send the newsletter now",
)
def send_newsletter(
    body: SendRequest,
    actor: Actor = Depends(get_current_actor),
    service: NewsletterService = Depends(get_newsletter_service),
) -> dict[str, Any]:
    """
    Manual send. With item_ids the listed items are sent (manual mode),
    otherwise the newest unsent published items (automatic mode).
    """
    owner_id = body.owner_id or _owner_id(actor)
    try:
        outcome = service.send_now(actor, owner_id, body.item_ids or None)
    except (PermissionError, OwnerNotFoundError, NewsletterDisabledError) as e:
        raise _http_error(e) from e
    except DeliveryRecordError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)) from e

    result = outcome.to_dict()
    if outcome.skipped:
        result["message"] = outcome.reason
    return result
