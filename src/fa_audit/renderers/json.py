"""JSON output for snapshots and reports.

A snapshot written here is the on-disk format ``fa-audit diff`` reads back,
so models are dumped with pydantic's JSON mode and nothing else.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel

from fa_audit.renderers.base import BaseRenderer, OutputFormat, RenderContext


def to_jsonable(data: Any) -> Any:
    """Dump models, including models nested in dict bundles and lists."""
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, dict):
        return {str(section): to_jsonable(value) for section, value in data.items()}
    if isinstance(data, (list, tuple)):
        return [to_jsonable(item) for item in data]
    if isinstance(data, bytes):
        return "0x" + data.hex()
    return data


class JSONRenderer(BaseRenderer):
    """Machine-readable renderer.

    A scan bundle such as ``{"snapshot": ..., "diff": ..., "risk": ...}``
    keeps its section names; sections that were not produced stay ``null``.
    """

    @property
    def format(self) -> OutputFormat:
        return OutputFormat.JSON

    def render(self, data: Any, context: RenderContext) -> str:
        return json.dumps(
            to_jsonable(data),
            indent=context.indent or None,
            ensure_ascii=False,
        )
