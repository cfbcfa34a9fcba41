from __future__ import annotations

from typing import Annotated, Any

from fastapi import Depends, Request

from repair_desk.config import Settings, load_settings
from repair_desk.mailer import Notifier
from repair_desk.store import SupabaseStore


def get_settings() -> Settings:
    return load_settings()


def get_store(settings: Annotated[Settings, Depends(get_settings)]) -> SupabaseStore:
    return SupabaseStore.from_settings(settings)


def get_notifier(settings: Annotated[Settings, Depends(get_settings)]) -> Notifier:
    return Notifier.from_settings(settings)


async def read_json_object(request: Request) -> dict[str, Any]:
    """Request body as a JSON object; an empty, malformed or non-object body reads as ``{}``.

    Handlers then answer with their own "Missing ..." 400 instead of a 422.
    """
    try:
        data = await request.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


SettingsDep = Annotated[Settings, Depends(get_settings)]
StoreDep = Annotated[SupabaseStore, Depends(get_store)]
NotifierDep = Annotated[Notifier, Depends(get_notifier)]
JsonBody = Annotated[dict[str, Any], Depends(read_json_object)]
