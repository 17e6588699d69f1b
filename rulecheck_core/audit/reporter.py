"""
Terminal report for verification results.

Renders the structured `VCResult` values produced by the checker; the
checker itself never prints.
"""

from typing import Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..language.ast import DeclContext, format_term
from ..verification.conditions import VCResult, VCStatus

_STYLES = {
    VCStatus.PROVED: ("green", "✅ PROVED"),
    VCStatus.FAILED: ("red", "❌ FAILED"),
    VCStatus.UNKNOWN: ("yellow", "❔ UNKNOWN"),
    VCStatus.TRANSLATION_FAILED: ("yellow", "⚠️  TRANSLATION FAILED"),
}


class VerificationReporter:
    def __init__(
        self,
        console: Optional[Console] = None,
        width: int = 96,
        debug: bool = False,
        decl_ctx: Optional[DeclContext] = None,
    ):
        self.console = console or Console()
        self.width = width
        self.debug = debug
        self.decl_ctx = decl_ctx

    def report(self, results: List[VCResult]):
        if not results:
            self.console.print("[dim]No verification conditions to check.[/dim]")
            return

        self._print_header()
        for i, result in enumerate(results, 1):
            self._render_result(i, result)
        self._print_summary(results)

    def summary(self, results: List[VCResult]) -> Dict[str, int]:
        counts = {status.value: 0 for status in VCStatus}
        for r in results:
            counts[r.status.value] += 1
        return counts

    def _render_result(self, index: int, result: VCResult):
        color, label = _STYLES[result.status]
        title = f"[bold {color}]{label} #{index}[/bold {color}]"
        subtitle = f"[dim]{result.vc.kind.value}[/dim]"

        self.console.print(Panel(Text(result.message, style="white"), title=title,
                                 subtitle=subtitle, border_style=color, width=self.width))

        if self.debug:
            self._print_debug(result)

        if result.model:
            self._print_counterexample(result.model)
        elif result.counterexample:
            # no decoded values (solver gave no model, or decoding failed)
            self.console.print(Text(result.counterexample, style="yellow"))
            self.console.print()

    def _print_counterexample(self, model: Dict[str, str]):
        table = Table(title="🧪 Counterexample", show_header=True, header_style="bold cyan", width=self.width)
        table.add_column("", style="blue", width=4)
        table.add_column("Variable", style="yellow", width=32)
        table.add_column("Value", style="white")
        for name, value in model.items():
            table.add_row("-->", name, value)
        self.console.print(table)
        self.console.print()

    def _print_debug(self, result: VCResult):
        table = Table(title="🔎 Debug", show_header=True, header_style="bold magenta", width=self.width)
        table.add_column("Item", style="magenta", width=14)
        table.add_column("Value", style="white")
        table.add_row("guard", format_term(result.vc.guard, self.decl_ctx))
        if result.smt:
            table.add_row("z3", result.smt)
        meta = result.meta or {}
        if "reason_unknown" in meta:
            table.add_row("reason", str(meta["reason_unknown"]))
        for rec in meta.get("trace_tail", []):
            fields = ", ".join(f"{k}={v}" for k, v in rec.items() if k != "event")
            table.add_row(str(rec.get("event")), fields)
        self.console.print(table)
        self.console.print()

    def _print_header(self):
        self.console.print()
        self.console.print(Panel(
            "[bold white]Rules Verification Report[/bold white]",
            style="bold cyan",
            subtitle="[cyan]Z3 Engine[/cyan]",
            width=self.width,
        ))
        self.console.print()

    def _print_summary(self, results: List[VCResult]):
        counts = self.summary(results)
        table = Table(title="📊 Summary", show_header=True, header_style="bold yellow", width=self.width)
        table.add_column("Status", style="cyan", width=40)
        table.add_column("Count", style="white")
        for status, n in counts.items():
            table.add_row(status, str(n))
        self.console.print(table)
        self.console.print()
