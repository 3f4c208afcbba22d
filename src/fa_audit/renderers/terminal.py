"""Terminal renderer for fa-audit output."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from fa_audit.renderers.base import BaseRenderer, OutputFormat, RenderContext

_SEVERITY_STYLES = {
    "critical": "bold red",
    "high": "red",
    "medium": "yellow",
    "low": "green",
    "info": "blue",
}

_RISK_STYLES = {
    "SAFE_STATIC": "bold green",
    "SAFE_DYNAMIC": "green",
    "OPAQUE_BUT_ACTIVE": "yellow",
    "ELEVATED_RISK": "bold yellow",
    "DANGEROUS": "bold red",
}

_INVARIANT_STYLES = {
    "ok": "green",
    "warning": "yellow",
    "violation": "bold red",
    "unknown": "dim",
}


def _styled(value: str, styles: dict[str, str]) -> str:
    style = styles.get(value, "white")
    return f"[{style}]{value}[/{style}]"


class TerminalRenderer(BaseRenderer):
    """Renderer for rich terminal output.

    Knows how to draw snapshots, diff reports, behavior evidence and risk
    syntheses; anything else is printed as JSON. A dict of those is drawn
    section by section.

    Example:
        renderer = TerminalRenderer()
        renderer.render(snapshot, context)
    """

    def __init__(self, console: Console | None = None) -> None:
        """Initialize the terminal renderer.

        Args:
            console: Rich console to use. Creates a new one if None.
        """
        self._console = console or Console()

    @property
    def format(self) -> OutputFormat:
        """The output format this renderer produces."""
        return OutputFormat.TERMINAL

    def render(self, data: Any, context: RenderContext) -> str:
        """Render data to the terminal.

        Note: This method prints to the console and returns an empty string.
        For capturing output, use Console.capture().

        Args:
            data: The data to render
            context: Rendering context

        Returns:
            Empty string (output is printed to console)
        """
        if isinstance(data, dict):
            for value in data.values():
                if value is not None:
                    self.render(value, context)
            return ""

        class_name = data.__class__.__name__
        if class_name == "Snapshot":
            self._render_snapshot(data, context)
        elif class_name == "DiffReport":
            self._render_diff(data, context)
        elif class_name == "BehaviorEvidence":
            self._render_behavior(data, context)
        elif class_name == "RiskSynthesis":
            self._render_risk(data, context)
        else:
            self._render_generic(data, context)

        return ""

    def render_to_file(self, data: Any, context: RenderContext) -> None:
        """Render data to a file.

        Captures terminal output and writes to file.

        Args:
            data: The data to render
            context: Rendering context
        """
        if context.output_path is None:
            raise ValueError("output_path must be set in context for file rendering")

        file_console = Console(record=True, force_terminal=context.color)
        original_console = self._console
        self._console = file_console

        try:
            self.render(data, context)
            output = file_console.export_text(styles=context.color)
            context.output_path.write_text(output, encoding="utf-8")
        finally:
            self._console = original_console

    def _render_snapshot(self, snapshot: Any, context: RenderContext) -> None:
        """Render a snapshot."""
        identity = snapshot.identity
        if identity.kind == "fa":
            header = f"[bold]FA:[/bold] {identity.fa_address}"
        else:
            header = f"[bold]Coin:[/bold] {identity.coin_type}"
        coverage = snapshot.coverage.coverage.value
        coverage_str = "[green]complete[/green]" if coverage == "complete" else "[yellow]partial[/yellow]"

        self._console.print()
        self._console.print(
            Panel(
                f"{header}\n"
                f"[bold]Symbol:[/bold] {identity.symbol or '-'}\n"
                f"[bold]Owner:[/bold] {snapshot.owner or '-'}\n"
                f"[bold]Coverage:[/bold] {coverage_str}\n"
                f"[bold]Captured:[/bold] {snapshot.meta.timestamp_iso}",
                title="Asset Snapshot",
            )
        )

        for reason in snapshot.coverage.reasons:
            self._console.print(f"  [yellow]![/yellow] {reason}")

        self._console.print()
        table = Table(title="Supply & Capabilities", show_header=False)
        table.add_column("Field", style="bold")
        table.add_column("Value")
        table.add_row("Supply", snapshot.supply.supply_current_formatted or snapshot.supply.supply_current_base or "-")
        table.add_row("Max supply", snapshot.supply.supply_max_base or "-")
        table.add_row("Decimals", str(snapshot.supply.decimals) if snapshot.supply.decimals is not None else "-")
        for name, value in snapshot.capabilities.model_dump().items():
            if isinstance(value, bool):
                table.add_row(name, "[red]yes[/red]" if value else "[dim]no[/dim]")
        self._console.print(table)

        surface = snapshot.control_surface
        if surface.hooks:
            self._console.print()
            table = Table(title="Dispatch Hooks")
            table.add_column("Slot", style="bold")
            table.add_column("Target")
            table.add_column("Risk")
            for hook in surface.hooks:
                table.add_row(hook.hook_type, hook.target, _styled(hook.risk, _SEVERITY_STYLES))
            self._console.print(table)

        pins = snapshot.pins
        if pins:
            self._console.print()
            table = Table(title="Module Pins")
            table.add_column("Module", style="bold")
            table.add_column("Role")
            table.add_column("Basis")
            table.add_column("Hash")
            for pin in pins:
                table.add_row(
                    pin.module_id,
                    pin.role or "-",
                    pin.hash_basis.value,
                    (pin.code_hash or "[dim]unavailable[/dim]")[: 16 if not context.verbose else None],
                )
            self._console.print(table)

        if snapshot.findings:
            self._console.print()
            table = Table(title="Findings")
            table.add_column("Severity")
            table.add_column("Rule", style="bold")
            table.add_column("Title")
            for finding in snapshot.findings:
                table.add_row(_styled(finding.severity, _SEVERITY_STYLES), finding.id, finding.title)
            self._console.print(table)

        if snapshot.invariants is not None and (context.verbose or snapshot.invariants.items):
            self._console.print()
            table = Table(title=f"Invariants (overall: {snapshot.invariants.overall.value})")
            table.add_column("Invariant", style="bold")
            table.add_column("Status")
            table.add_column("Detail")
            for item in snapshot.invariants.items:
                table.add_row(item.id, _styled(item.status.value, _INVARIANT_STYLES), item.detail)
            self._console.print(table)

        if snapshot.evidence is not None and context.verbose:
            self._console.print()
            sources = ", ".join(s.value for s in snapshot.evidence.sources_used) or "-"
            self._console.print(f"[bold]Evidence sources:[/bold] {sources}")
            for item in snapshot.evidence.parity:
                self._console.print(f"  {item.id}: {item.status.value} [dim]{item.detail}[/dim]")

    def _render_diff(self, report: Any, context: RenderContext) -> None:
        """Render a diff report."""
        self._console.print()
        worst = report.max_severity
        status = "[bold]changed[/bold]" if report.changed else "[green]unchanged[/green]"
        self._console.print(
            Panel(
                f"[bold]Asset:[/bold] {report.identity_key or '-'}\n"
                f"[bold]Status:[/bold] {status}\n"
                f"[bold]Max severity:[/bold] {_styled(worst.value, _SEVERITY_STYLES) if worst else '-'}",
                title="Snapshot Diff",
            )
        )

        if report.changes:
            self._console.print()
            table = Table(title="Changes")
            table.add_column("Severity")
            table.add_column("Type", style="bold")
            table.add_column("Before", max_width=30)
            table.add_column("After", max_width=30)
            for change in report.changes:
                table.add_row(
                    _styled(change.severity.value, _SEVERITY_STYLES),
                    change.type.value,
                    _short(change.before),
                    _short(change.after),
                )
            self._console.print(table)

        hints = report.agent_hints
        if hints.requires_multi_rpc or hints.requires_tx_correlation:
            self._console.print()
            self._console.print("[bold yellow]Follow-up[/bold yellow]")
            if hints.requires_multi_rpc:
                self._console.print("  - Confirm with an independent RPC endpoint")
            if hints.requires_tx_correlation:
                self._console.print("  - Correlate with recent transactions")
            if hints.escalation_reason:
                self._console.print(f"  [dim]{hints.escalation_reason}[/dim]")

    def _render_behavior(self, evidence: Any, context: RenderContext) -> None:
        """Render behavior evidence."""
        self._console.print()
        self._console.print(
            Panel(
                f"[bold]Status:[/bold] {evidence.status.value}\n"
                f"[bold]Source:[/bold] {evidence.source or '-'}\n"
                f"[bold]Transactions:[/bold] {evidence.tx_count}\n"
                f"[bold]Addresses sampled:[/bold] {evidence.sampled_address_count}",
                title="Behavior Sample",
            )
        )

        if evidence.error:
            self._console.print(f"  [red]![/red] {evidence.error}")
        for warning in evidence.warnings:
            self._console.print(f"  [yellow]![/yellow] {warning}")
        if evidence.opaque_active:
            self._console.print(f"  [yellow]![/yellow] Opaque but active: {evidence.opaque_reason or ''}")

        if evidence.phantom_entries:
            self._console.print()
            table = Table(title="Phantom Entry Points")
            table.add_column("Function", style="bold red")
            table.add_column("Reason")
            table.add_column("Transactions")
            for phantom in evidence.phantom_entries:
                table.add_row(phantom.full_id, phantom.reason, str(len(phantom.tx_hashes)))
            self._console.print(table)

        if evidence.invoked_entries and context.verbose:
            self._console.print()
            table = Table(title="Invoked Entry Points")
            table.add_column("Function", style="bold")
            table.add_column("Transaction")
            for entry in evidence.invoked_entries:
                table.add_row(entry.full_id, entry.tx_hash or "-")
            self._console.print(table)

    def _render_risk(self, synthesis: Any, context: RenderContext) -> None:
        """Render a risk synthesis."""
        self._console.print()
        signals = ", ".join(s.value for s in synthesis.signals) or "-"
        self._console.print(
            Panel(
                f"[bold]Verdict:[/bold] {_styled(synthesis.risk_level.value, _RISK_STYLES)}\n"
                f"[bold]Signals:[/bold] {signals}",
                title="Risk Synthesis",
            )
        )
        for line in synthesis.rationale:
            self._console.print(f"  - {line}")

    def _render_generic(self, data: Any, context: RenderContext) -> None:
        """Render generic data."""
        import json

        from pydantic import BaseModel

        if isinstance(data, BaseModel):
            dict_data = data.model_dump(mode="json")
        elif isinstance(data, (dict, list)):
            dict_data = data
        else:
            self._console.print(str(data))
            return

        self._console.print(json.dumps(dict_data, indent=context.indent, default=str))


def _short(value: Any, limit: int = 60) -> str:
    if value is None:
        return "-"
    text = str(value)
    return text if len(text) <= limit else text[: limit - 3] + "..."
