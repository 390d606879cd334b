"""
Scheduler endpoint.

GET /api/cron/newsletter - scan every digest owner and send to those due.
Protected by the shared cron secret.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from src.api.deps import get_newsletter_service, require_cron_secret
from src.services.newsletter import NewsletterService

router = APIRouter()


@router.get(
    "/newsletter",
    dependencies=[Depends(require_cron_secret)],
    summary="Run the scheduled digest scan",
)
def run_newsletter_cron(
    service: NewsletterService = Depends(get_newsletter_service),
) -> dict[str, Any]:
    results = service.scan_and_send_due()
    return {
        "message": f"Processed {len(results)} owners",
        "results": [r.to_dict() for r in results],
    }
