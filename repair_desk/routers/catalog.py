from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query, status

from repair_desk.deps import JsonBody, StoreDep
from repair_desk.schemas import (
    CatalogCreated,
    CatalogDelete,
    CatalogEntryCreate,
    CatalogEntryOut,
    CatalogEntryUpdate,
)
from repair_desk.store import CATALOG_TABLE, Search

router = APIRouter(prefix="/api/catalog", tags=["Catalog"])

CATALOG_COLUMNS = "id,brand,model,color,repair_type,quality,price"
CATALOG_ORDER = ["brand", "model", "color", "repair_type", "quality"]
CATALOG_LIMIT = 500
SEARCH_FIELDS = ("brand", "model", "repair_type")


def _brand_names(data: Any) -> list[str]:
    names: list[str] = []
    for item in data or []:
        name = item.get("brand") if isinstance(item, dict) else item
        if name and name not in names:
            names.append(str(name))
    return names


@router.get("")
async def list_catalog(
    store: StoreDep,
    brand: str = Query(default=""),
    model: str = Query(default=""),
    q: str = Query(default=""),
    brands: str = Query(default=""),
) -> list[Any]:
    if brands == "1":
        return _brand_names(await store.rpc("get_brands"))

    filters = {}
    if brand:
        filters["brand"] = brand
    if model:
        filters["model"] = model
    rows = await store.select(
        CATALOG_TABLE,
        columns=CATALOG_COLUMNS,
        filters=filters,
        search=Search(q, SEARCH_FIELDS) if q else None,
        order=CATALOG_ORDER,
        limit=CATALOG_LIMIT,
    )
    return [CatalogEntryOut.model_validate(row).model_dump() for row in rows]


@router.post("", response_model=CatalogCreated)
async def create_entry(body: JsonBody, store: StoreDep) -> CatalogCreated:
    payload = CatalogEntryCreate.model_validate(body)
    if payload.missing_fields():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="brand, model, color and repair_type are required",
        )
    created = await store.insert(CATALOG_TABLE, payload.model_dump(), columns="id")
    return CatalogCreated(id=created["id"])


@router.patch("")
async def update_entry(body: JsonBody, store: StoreDep) -> dict[str, bool]:
    payload = CatalogEntryUpdate.model_validate(body)
    if not payload.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing id")
    emptied = payload.emptied_fields()
    if emptied:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot clear required fields: {', '.join(emptied)}",
        )
    changes = payload.changes()
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")
    await store.update(CATALOG_TABLE, payload.id, changes, columns="id")
    return {"ok": True}


@router.delete("")
async def delete_entry(body: JsonBody, store: StoreDep) -> dict[str, bool]:
    payload = CatalogDelete.model_validate(body)
    if not payload.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing id")
    await store.delete(CATALOG_TABLE, payload.id)
    return {"ok": True}
