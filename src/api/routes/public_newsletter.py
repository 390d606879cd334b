"""
Public newsletter endpoints for subscription management.

Endpoints:
- POST /api/public/newsletter/subscribe - Start double opt-in for one author
- POST /api/public/newsletter/confirm - Redeem a verification token
- POST /api/public/newsletter/unsubscribe - Opt out (author + email)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from src.api.deps import get_client_ip, get_ctx
from src.app_shell.context import ServiceContext
from src.components import newsletter
from src.components.newsletter import ValidationError

router = APIRouter()

# Component error code -> HTTP status
ERROR_STATUS = {
    "EMPTY_EMAIL": status.HTTP_400_BAD_REQUEST,
    "EMAIL_TOO_LONG": status.HTTP_400_BAD_REQUEST,
    "INVALID_FORMAT": status.HTTP_400_BAD_REQUEST,
    "DISPOSABLE_EMAIL": status.HTTP_400_BAD_REQUEST,
    "ADDRESS_BOUNCED": status.HTTP_400_BAD_REQUEST,
    "MISSING_TOKEN": status.HTTP_400_BAD_REQUEST,
    "RATE_LIMIT": status.HTTP_429_TOO_MANY_REQUESTS,
    "NEWSLETTER_DISABLED": status.HTTP_403_FORBIDDEN,
    "OWNER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "INVALID_TOKEN": status.HTTP_404_NOT_FOUND,
    "SUBSCRIPTION_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "EMAIL_SEND_FAILED": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


# --- Request/Response Models ---


class SubscribeRequest(BaseModel):
    email: str = Field("", description="Email address to subscribe")
    author_username: str = Field("", description="Username of the author")


class ConfirmRequest(BaseModel):
    token: str = ""


class UnsubscribeRequest(BaseModel):
    email: str = ""
    author_username: str = ""


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    detail: str


def raise_for_errors(errors: list[ValidationError]) -> None:
    """Raise an HTTPException for the first component error."""
    if not errors:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")
    error = errors[0]
    raise HTTPException(
        status_code=ERROR_STATUS.get(error.code, status.HTTP_400_BAD_REQUEST),
        detail=error.message,
    )


# --- Subscribe ---


@router.post(
    "/newsletter/subscribe",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid request"},
        403: {"model": ErrorResponse, "description": "Newsletter not enabled"},
        404: {"model": ErrorResponse, "description": "Author not found"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
    },
    summary="Subscribe to an author's newsletter",
)
def subscribe_to_newsletter(
    body: SubscribeRequest,
    request: Request,
    ctx: ServiceContext = Depends(get_ctx),
) -> MessageResponse:
    """
    Double opt-in subscribe.

    Creates (or re-issues) a pending subscription and mails a
    verification link. An already-active address is reported as such.
    """
    if not body.email or not body.author_username:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email and authorUsername are required",
        )

    result = newsletter.run_subscribe(
        newsletter.SubscribeInput(
            email=body.email,
            owner_username=body.author_username,
            ip_address=get_client_ip(request),
        ),
        owners=ctx.owner_repo,
        subscribers=ctx.subscriber_repo,
        email_sender=ctx.email,
        rate_limiter=ctx.rate_limiter,
        config=ctx.subscription_config,
        clock=ctx.clock,
    )
    if not result.success:
        raise_for_errors(result.errors)

    if result.already_subscribed:
        return MessageResponse(message="Already subscribed")
    return MessageResponse(message="Verification email sent")


# --- Confirm ---


@router.post(
    "/newsletter/confirm",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Token missing"},
        404: {"model": ErrorResponse, "description": "Invalid or expired token"},
    },
    summary="Confirm newsletter subscription",
)
def confirm_subscription(
    body: ConfirmRequest,
    ctx: ServiceContext = Depends(get_ctx),
) -> MessageResponse:
    result = newsletter.run_confirm(
        newsletter.ConfirmInput(token=body.token),
        subscribers=ctx.subscriber_repo,
        clock=ctx.clock,
    )
    if not result.success:
        raise_for_errors(result.errors)

    if result.already_confirmed:
        return MessageResponse(message="Already verified")
    return MessageResponse(message="Subscription verified successfully")


# --- Unsubscribe ---


@router.post(
    "/newsletter/unsubscribe",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid request"},
        404: {"model": ErrorResponse, "description": "Author or subscription not found"},
    },
    summary="Unsubscribe from an author's newsletter",
)
def unsubscribe_from_newsletter(
    body: UnsubscribeRequest,
    ctx: ServiceContext = Depends(get_ctx),
) -> MessageResponse:
    if not body.email or not body.author_username:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email and authorUsername are required",
        )

    result = newsletter.run_unsubscribe(
        newsletter.UnsubscribeInput(email=body.email, owner_username=body.author_username),
        owners=ctx.owner_repo,
        subscribers=ctx.subscriber_repo,
        clock=ctx.clock,
    )
    if not result.success:
        raise_for_errors(result.errors)

    if result.already_unsubscribed:
        return MessageResponse(message="Already unsubscribed")
    return MessageResponse(message="Successfully unsubscribed")
