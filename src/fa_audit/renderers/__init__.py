"""Renderers for scan bundles, diff reports, behavior samples and risk verdicts."""

from fa_audit.renderers.base import BaseRenderer, OutputFormat, RenderContext, Renderer
from fa_audit.renderers.json import JSONRenderer
from fa_audit.renderers.terminal import TerminalRenderer

_RENDERERS: dict[OutputFormat, type[BaseRenderer]] = {
    OutputFormat.JSON: JSONRenderer,
    OutputFormat.TERMINAL: TerminalRenderer,
}


def get_renderer(format: OutputFormat | str) -> BaseRenderer:
    """Instantiate the renderer for ``format`` ("json" or "terminal").

    Raises:
        ValueError: If the format is unknown
    """
    try:
        return _RENDERERS[OutputFormat(format)]()
    except (ValueError, KeyError):
        raise ValueError(f"Unsupported format: {format}") from None


__all__ = [
    "BaseRenderer",
    "JSONRenderer",
    "OutputFormat",
    "RenderContext",
    "Renderer",
    "TerminalRenderer",
    "get_renderer",
]
