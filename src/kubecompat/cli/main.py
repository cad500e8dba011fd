#!/usr/bin/env python3
"""
KUBECOMPAT CLI - Migration Readiness Console
--------------------------------------------
Primary interface. Translates user commands into Engine flows:

    kubecompat check   <manifests>            assess manifests against a target
    kubecompat collect <facts-file>           snapshot a cluster into a fact file
    kubecompat compare <facts-a> <facts-b>    diff two snapshots

Exit codes: 0 no FAIL rows, 1 at least one FAIL row, 2 input error.

Author: KubeCompat Team
Date: 2026-10-19
"""

import sys
import argparse
import logging
from contextlib import nullcontext
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from kubecompat.cli.formatter import ReportFormatter
from kubecompat.core.config import AssessmentConfig
from kubecompat.core.engine import AssessmentEngine
from kubecompat.core.errors import InputError

VERSION = "kubecompat v1.0.0"

EXIT_OK = 0
EXIT_INPUT_ERROR = 2

# Global console for consistent styling across the application
console = Console()


class KubeCompatCLI:
    """
    CLI wrapper that builds the configuration, runs one engine flow and
    renders the result.
    """

    def __init__(self):
        self.parser = argparse.ArgumentParser(
            prog="kubecompat",
            description="KubeCompat - Kubernetes Migration & Deployment Compatibility Checks",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self.formatter = ReportFormatter(console)
        self._setup_args()

    def _setup_args(self):
        """Configures the command-line flags and subcommands."""
        self.parser.add_argument("--version", action="version", version=VERSION)
        self.parser.add_argument("-v", "--verbose", action="store_true", help="Show progress logs")
        self.parser.add_argument("--config", help="YAML file with engine settings")
        subparsers = self.parser.add_subparsers(dest="command", metavar="Command")

        # 'check' - manifests vs. target cluster
        check_parser = subparsers.add_parser("check", help="🔍 Check manifests against a target cluster")
        check_parser.add_argument("path", help="Manifest file or directory (*.yaml, *.yml)")
        check_parser.add_argument("--context", help="Target kubeconfig context (default: current)")
        check_parser.add_argument("-o", "--output", help="Write CSV report here ('-' for stdout)")
        check_parser.add_argument("--no-dry-run", action="store_true", help="Skip the server-side dry-run")
        check_parser.add_argument("--workers", type=int, help="Parallel ServiceAccount probes")
        check_parser.add_argument("--kubectl", help="kubectl binary used for the dry-run")

        # 'collect' - cluster snapshot
        collect_parser = subparsers.add_parser("collect", help="📸 Snapshot cluster facts to a file")
        collect_parser.add_argument("output", help="Fact file to write")
        collect_parser.add_argument("--context", help="Source kubeconfig context (default: current)")

        # 'compare' - two snapshots
        compare_parser = subparsers.add_parser("compare", help="⚖️  Compare two fact files")
        compare_parser.add_argument("source", help="Fact file of the source cluster (A)")
        compare_parser.add_argument("target", help="Fact file of the target cluster (B)")
        compare_parser.add_argument("-o", "--output", help="Write CSV report here ('-' for stdout)")
        compare_parser.add_argument("--show-same", action="store_true", help="Include unchanged facts in the table")

    def print_header(self, subtitle: str):
        console.print(Panel.fit(
            f"[bold cyan]{VERSION}[/bold cyan]\n"
            "══════════════════════════════════════════════════════════════════",
            title=f"[bold white]{subtitle}[/bold white]",
            border_style="cyan"
        ))

    def _configure_logging(self, verbose: bool):
        logging.basicConfig(
            level=logging.INFO if verbose else logging.WARNING,
            format="%(name)s: %(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_time=False, show_path=False)],
        )

    def _build_config(self, args: argparse.Namespace) -> AssessmentConfig:
        config = AssessmentConfig.from_file(args.config) if args.config else AssessmentConfig()
        return config.merged(
            context=getattr(args, "context", None),
            kubectl=getattr(args, "kubectl", None),
            max_workers=getattr(args, "workers", None),
            dry_run=False if getattr(args, "no_dry_run", False) else None,
        )

    # --- Flows ---
    def _run_check(self, engine: AssessmentEngine, args: argparse.Namespace) -> int:
        quiet = args.output == "-"
        if not quiet:
            self.print_header("Manifest Compatibility Check")

        with console.status("Assessing manifests against target...", spinner="dots") if not quiet else nullcontext():
            verdicts = engine.check_manifests(args.path)

        if args.output:
            self.formatter.save(self.formatter.verdicts_to_csv(verdicts), args.output)
        if not quiet:
            self.formatter.print_verdicts(verdicts)
            self.formatter.print_summary(engine.generate_summary(verdicts))
        return engine.exit_code(verdicts)

    def _run_collect(self, engine: AssessmentEngine, args: argparse.Namespace) -> int:
        self.print_header("Cluster Fact Collection")
        with console.status("Collecting cluster facts...", spinner="dots"):
            facts = engine.collect_facts(args.output)
        console.print(f"[bold green]✅ Wrote {len(facts)} facts to[/bold green] [white]{args.output}[/white]")
        return EXIT_OK

    def _run_compare(self, engine: AssessmentEngine, args: argparse.Namespace) -> int:
        quiet = args.output == "-"
        rows = engine.compare_facts(args.source, args.target)

        if args.output:
            self.formatter.save(self.formatter.diff_to_csv(rows), args.output)
        if not quiet:
            self.print_header("Cluster Comparison")
            self.formatter.print_diff(rows, show_same=args.show_same)
            self.formatter.print_summary(engine.generate_summary(rows))
        return engine.exit_code(rows)

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Primary routing entry point. Returns the process exit code."""
        args = self.parser.parse_args(argv)
        if not args.command:
            self.print_header("Kubernetes Compatibility Checks")
            self.parser.print_help()
            return EXIT_OK

        self._configure_logging(args.verbose)
        try:
            engine = AssessmentEngine(self._build_config(args))
            if args.command == "check":
                return self._run_check(engine, args)
            if args.command == "collect":
                return self._run_collect(engine, args)
            return self._run_compare(engine, args)
        except InputError as e:
            console.print(f"[bold red]Error:[/bold red] {e}")
            return EXIT_INPUT_ERROR


def main():
    """Application entry point with interrupt handling."""
    try:
        sys.exit(KubeCompatCLI().run())
    except KeyboardInterrupt:
        console.print("\n[bold red]Terminated by user.[/bold red]")
        sys.exit(130)


if __name__ == "__main__":
    main()
