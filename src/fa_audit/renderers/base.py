"""Renderer protocol and shared rendering options."""

from enum import Enum
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field


class OutputFormat(str, Enum):
    """Formats a scan, diff, behavior sample or risk verdict can be written in."""

    JSON = "json"
    TERMINAL = "terminal"


class RenderContext(BaseModel):
    """Options shared by all renderers."""

    model_config = {"frozen": True}

    format: OutputFormat = Field(default=OutputFormat.TERMINAL, description="Output format")
    output_path: Path | None = Field(default=None, description="Write here instead of stdout")
    verbose: bool = Field(
        default=False, description="Show evidence, invariant and full-hash detail (terminal only)"
    )
    color: bool = Field(default=True, description="Keep ANSI styles when writing terminal output to a file")
    indent: int = Field(default=2, description="JSON indentation; 0 writes a single line")


@runtime_checkable
class Renderer(Protocol):
    """Anything that can turn audit models into text.

    Input is a Snapshot, DiffReport, BehaviorEvidence or RiskSynthesis, or
    a dict bundling several of them under section names.
    """

    @property
    def format(self) -> OutputFormat: ...

    def render(self, data: Any, context: RenderContext) -> str: ...

    def render_to_file(self, data: Any, context: RenderContext) -> None: ...


class BaseRenderer:
    """Shared file output; subclasses provide ``format`` and ``render``."""

    def render(self, data: Any, context: RenderContext) -> str:
        raise NotImplementedError

    def render_to_file(self, data: Any, context: RenderContext) -> None:
        """Write the rendered output to ``context.output_path``, creating parent directories.

        Raises:
            ValueError: If no output_path is set
        """
        path = context.output_path
        if path is None:
            raise ValueError("RenderContext.output_path is required to render to a file")

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.render(data, context), encoding="utf-8")
