from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, status

from repair_desk.deps import JsonBody, NotifierDep, SettingsDep, StoreDep
from repair_desk.schemas import RepairRequestCreate
from repair_desk.store import REQUESTS_TABLE
from repair_desk.templates import intake_confirmation

logger = logging.getLogger(__name__)

# Served from its own sub-application under /api so that only this route is
# opened to the storefront origins.
router = APIRouter(tags=["Intake"])


@router.post("/create-request")
async def create_request(
    body: JsonBody,
    store: StoreDep,
    notifier: NotifierDep,
    settings: SettingsDep,
) -> dict[str, Any]:
    payload = RepairRequestCreate.model_validate(body)
    if not payload.customer_email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing customer_email")

    row = payload.to_row()
    created = await store.insert(REQUESTS_TABLE, row, columns="id")
    request_id = created.get("id")
    if request_id is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Database error")
    logger.info("Repair request %s created", request_id)

    subject, html = intake_confirmation({**row, "id": request_id}, settings.shop_name)
    outcome = await notifier.deliver(payload.customer_email, subject, html)
    return {"ok": True, "id": request_id, **outcome.response_fields()}
