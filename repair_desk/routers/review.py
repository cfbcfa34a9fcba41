from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, status

from repair_desk.config import Settings
from repair_desk.deps import JsonBody, NotifierDep, SettingsDep, StoreDep
from repair_desk.mailer import Attachment
from repair_desk.quote import QuoteData, quote_filename, render_quote_pdf
from repair_desk.schemas import RejectRequest, RequestStatus, ReviewRequest, safe
from repair_desk.store import REQUESTS_TABLE, RecordNotFound, SupabaseStore
from repair_desk.templates import approval_notice, rejection_notice

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Review"])

REVIEW_COLUMNS = ",".join(
    [
        "id",
        "customer_name",
        "customer_email",
        "customer_phone",
        "brand",
        "model",
        "color",
        "issue",
        "price_text",
        "preferred_date",
        "preferred_time",
        "status",
    ]
)


async def transition(
    store: SupabaseStore,
    settings: Settings,
    request_id: str,
    patch: dict[str, Any],
) -> dict[str, Any]:
    """Write the new status and return the fields needed for the notification.

    Without ``review_require_pending`` any existing request is transitioned again,
    including ones already approved or rejected.
    """
    if not settings.review_require_pending:
        return await store.update(REQUESTS_TABLE, request_id, patch, columns=REVIEW_COLUMNS)

    pending = {"status": RequestStatus.pending.value}
    try:
        return await store.update(REQUESTS_TABLE, request_id, patch, columns=REVIEW_COLUMNS, expect=pending)
    except RecordNotFound:
        current = await store.get_by_id(REQUESTS_TABLE, request_id, columns="id,status")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"AlreadyProcessed: request is {current.get('status')}",
        ) from None


def _customer_email(record: dict[str, Any]) -> str:
    return str(record.get("customer_email") or "").strip()


@router.post("/approve")
async def approve(
    store: StoreDep,
    notifier: NotifierDep,
    settings: SettingsDep,
    body: JsonBody,
) -> dict[str, Any]:
    payload = ReviewRequest.model_validate(body)
    if not payload.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing id")

    record = await transition(store, settings, payload.id, {"status": RequestStatus.approved.value})
    logger.info("Repair request %s approved", payload.id)

    email = _customer_email(record)
    if not email:
        return {"ok": True, "data": record, "mail_sent": False, "pdf_sent": False}

    attachments: list[Attachment] = []
    pdf_error: str | None = None
    if settings.quote_pdf_enabled:
        quote = QuoteData.from_record(record)
        try:
            pdf = render_quote_pdf(quote, settings.shop_name)
        except Exception as exc:
            logger.warning("Quote PDF for request %s failed", payload.id, exc_info=True)
            pdf_error = str(exc) or exc.__class__.__name__
        else:
            attachments.append(Attachment(quote_filename(quote), pdf, "application/pdf"))

    subject, html = approval_notice(record, settings.shop_name, with_quote=bool(attachments))
    outcome = await notifier.deliver(email, subject, html, attachments)

    result: dict[str, Any] = {"ok": True, "data": record, **outcome.response_fields()}
    result["pdf_sent"] = outcome.sent and bool(attachments)
    if pdf_error is not None:
        result.setdefault("stage", "render_pdf")
        result["pdf_error"] = safe(pdf_error)
    return result


@router.post("/reject")
async def reject(
    store: StoreDep,
    notifier: NotifierDep,
    settings: SettingsDep,
    body: JsonBody,
) -> dict[str, Any]:
    payload = RejectRequest.model_validate(body)
    if not payload.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing id")

    patch = {"status": RequestStatus.rejected.value, "rejection_reason": payload.reason}
    record = await transition(store, settings, payload.id, patch)
    logger.info("Repair request %s rejected", payload.id)

    email = _customer_email(record)
    if not email:
        return {"ok": True, "data": record, "mail_sent": False}

    subject, html = rejection_notice(record, payload.reason, settings.shop_name)
    outcome = await notifier.deliver(email, subject, html)
    return {"ok": True, "data": record, **outcome.response_fields()}
