# src/kubecompat/cli/formatter.py
import csv
import io
import sys
from typing import Dict, List, Optional, Sequence, TextIO

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from kubecompat.core.models import DiffRow, Verdict

# Initialize the Rich console for high-quality terminal output
console = Console()

VERDICT_COLUMNS = ["Check", "Item", "Result", "Details"]
DIFF_COLUMNS = ["Key", "ClusterA", "ClusterB", "Assessment", "Notes"]

STYLES = {
    "OK": "green",
    "SAME": "green",
    "WARN": "yellow",
    "DIFF": "yellow",
    "FAIL": "bold red",
    "INFO": "cyan",
}


class ReportFormatter:
    """
    ReportFormatter: the report sink.
    Writes verdicts and diff rows as CSV and renders them as Rich tables.
    """

    def __init__(self, out: Optional[Console] = None):
        self.console = out or console

    # --- CSV ---
    def write_csv(self, rows: Sequence[Dict[str, str]], columns: List[str], stream: TextIO):
        """Every field quoted, header first."""
        writer = csv.DictWriter(stream, fieldnames=columns, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writeheader()
        for row in rows:
            writer.writerow(row)

    def verdicts_to_csv(self, verdicts: Sequence[Verdict]) -> str:
        buffer = io.StringIO()
        self.write_csv([v.as_row() for v in verdicts], VERDICT_COLUMNS, buffer)
        return buffer.getvalue()

    def diff_to_csv(self, rows: Sequence[DiffRow]) -> str:
        buffer = io.StringIO()
        self.write_csv([r.as_row() for r in rows], DIFF_COLUMNS, buffer)
        return buffer.getvalue()

    def save(self, content: str, output: Optional[str]):
        """'-' or None means stdout."""
        if not output or output == "-":
            sys.stdout.write(content)
            return
        with open(output, "w", encoding="utf-8", newline="") as f:
            f.write(content)

    # --- Terminal ---
    def _styled(self, value: str) -> str:
        style = STYLES.get(value)
        return f"[{style}]{value}[/{style}]" if style else value

    def print_verdicts(self, verdicts: Sequence[Verdict], title: str = "Compatibility Report"):
        table = Table(title=title, show_lines=True, header_style="bold magenta")
        table.add_column("Check", style="cyan")
        table.add_column("Item", style="white")
        table.add_column("Result", justify="center")
        table.add_column("Details")

        for v in verdicts:
            table.add_row(escape(v.check), escape(v.item), self._styled(v.result.value), escape(v.details))
        self.console.print(table)

    def print_diff(self, rows: Sequence[DiffRow], title: str = "Cluster Comparison", show_same: bool = False):
        table = Table(title=title, show_lines=True, header_style="bold magenta")
        table.add_column("Key", style="cyan")
        table.add_column("Cluster A", overflow="fold")
        table.add_column("Cluster B", overflow="fold")
        table.add_column("Assessment", justify="center")
        table.add_column("Notes")

        for r in rows:
            # SAME rows add noise on large snapshots
            if r.assessment.value == "SAME" and not show_same:
                continue
            table.add_row(escape(r.key), escape(r.value_a), escape(r.value_b), self._styled(r.assessment.value), escape(r.notes))
        self.console.print(table)

    def print_summary(self, summary: Dict):
        counts = "\n".join(
            f"{key + ':':<8} [{STYLES.get(key, 'white')}]{value}[/{STYLES.get(key, 'white')}]"
            for key, value in summary["counts"].items()
        )
        verdict = "[bold red]NOT READY[/bold red]" if summary["failed"] else "[bold green]READY[/bold green]"
        self.console.print(Panel(
            f"[bold white]Summary Report[/bold white]\n"
            f"════════════════════════════════════════\n"
            f"Total Rows: {summary['total_rows']}\n"
            f"{counts}\n"
            f"Status:   {verdict}",
            border_style="dim"
        ))
