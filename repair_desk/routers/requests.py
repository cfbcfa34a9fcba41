from __future__ import annotations

import csv
import io
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Response, status
from openpyxl import Workbook

from repair_desk.condition import classify_newness
from repair_desk.deps import JsonBody, StoreDep
from repair_desk.schemas import RepairRequestOut, RequestPatch, RequestStatus, UpdateRequestBody
from repair_desk.store import REQUESTS_TABLE, SupabaseStore

router = APIRouter(prefix="/api", tags=["Requests"])

EDIT_COLUMNS = "id,price_text,preferred_date,preferred_time,notes,status"
LIST_COLUMNS = ",".join(
    [
        "id",
        "created_at",
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
        "condition",
        "quality",
        "warranty",
        "notes",
        "rejection_reason",
    ]
)
REPORT_HEADER = [
    "id",
    "created_at",
    "status",
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
    "notes",
    "newness",
]


@router.post("/update-request")
async def update_request(body: JsonBody, store: StoreDep) -> dict[str, Any]:
    payload = UpdateRequestBody.model_validate(body)
    if not payload.id or not isinstance(payload.patch, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing id/patch")

    changes = RequestPatch.model_validate(payload.patch).changes()
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No allowed fields")

    data = await store.update(REQUESTS_TABLE, payload.id, changes, columns=EDIT_COLUMNS)
    return {"ok": True, "data": data}


def _parse_status(value: str) -> str | None:
    if value == "all":
        return None
    try:
        return RequestStatus(value).value
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown status: {value}") from None


async def _load_requests(store: SupabaseStore, status_filter: str) -> list[dict[str, Any]]:
    wanted = _parse_status(status_filter)
    rows = await store.select(
        REQUESTS_TABLE,
        columns=LIST_COLUMNS,
        filters={"status": wanted} if wanted else None,
        order=["-created_at"],
    )
    return [{**row, "newness": classify_newness(row)} for row in rows]


@router.get("/requests", response_model=list[RepairRequestOut])
async def list_requests(
    store: StoreDep,
    status_filter: str = Query(default="all", alias="status"),
) -> list[dict[str, Any]]:
    return await _load_requests(store, status_filter)


@router.get("/requests/export.csv")
async def export_csv(store: StoreDep, status_filter: str = Query(default="all", alias="status")) -> Response:
    rows = await _load_requests(store, status_filter)
    stream = io.StringIO()
    writer = csv.DictWriter(stream, fieldnames=REPORT_HEADER)
    writer.writeheader()
    for row in rows:
        writer.writerow({k: row.get(k) for k in REPORT_HEADER})
    return Response(
        content=stream.getvalue(),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="aanvragen.csv"'},
    )


@router.get("/requests/export.xlsx")
async def export_xlsx(store: StoreDep, status_filter: str = Query(default="all", alias="status")) -> Response:
    rows = await _load_requests(store, status_filter)
    wb = Workbook()
    ws = wb.active
    ws.title = "aanvragen"
    ws.append(REPORT_HEADER)
    for row in rows:
        ws.append([row.get(k) for k in REPORT_HEADER])
    output = io.BytesIO()
    wb.save(output)
    return Response(
        content=output.getvalue(),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": 'attachment; filename="aanvragen.xlsx"'},
    )


@router.get("/requests/{request_id}", response_model=RepairRequestOut)
async def get_request(request_id: str, store: StoreDep) -> dict[str, Any]:
    row = await store.get_by_id(REQUESTS_TABLE, request_id, columns=LIST_COLUMNS)
    return {**row, "newness": classify_newness(row)}
