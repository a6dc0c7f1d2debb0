from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class EntryOutput(BaseModel):
    position: int
    storage_key: str
    mime_type: str
    source_mime_type: str
    derived_sizes: list[str] = []
    caption: str | dict[str, Any] = ""
    tags: list[str] = []
    hidden: bool = False
    received_at: str
    received_size: int = 0
    received_name: str = ""


class ActionResultOutput(BaseModel):
    action: str
    position: int | None = None
    storage_key: str | None = None
    derived_sizes: list[str] = []
