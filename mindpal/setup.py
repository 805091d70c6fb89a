"""MindPal Setup and Health Check.

Validates the environment before the app is used: backend credentials,
backend reachability and the optional AI/speech service keys. Writes the
tunable configuration to ~/.mindpal/config.json and prints a health report.

Usage:
    python -m mindpal.setup          # Run full setup
    python -m mindpal.setup --check  # Just check, don't modify
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import requests
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from mindpal.backend.rest import RestBackendClient
from mindpal.config import (
    CONFIG_PATH,
    KEY_ENV_VARS,
    SERVICE_KEY_ENV_VARS,
    URL_ENV_VARS,
    MindpalConfig,
    load_config,
    save_config,
)

logger = logging.getLogger(__name__)

Ping = Callable[[MindpalConfig], Awaitable[int]]

SERVICE_LABELS = {
    "text_api_key": "AI chat",
    "speech_api_key": "Speech",
    "translate_api_key": "Translation",
}


class CheckStatus(Enum):
    """Status of a setup check."""

    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"
    SKIP = "skip"


@dataclass
class CheckResult:
    """Result of a single setup check."""

    name: str
    status: CheckStatus
    message: str
    details: str | None = None
    fix_instructions: str | None = None


@dataclass
class SetupResult:
    """Result of the full setup process."""

    success: bool
    checks: list[CheckResult] = field(default_factory=list)
    config_saved: bool = False
    config_path: Path | None = None


async def ping_backend(config: MindpalConfig) -> int:
    """Probe the backend health endpoint once and return the HTTP status."""
    client = RestBackendClient(config.backend)
    try:
        return await client.ping(config.connectivity.probe_timeout_seconds)
    finally:
        await client.close()


class SetupWizard:
    """MindPal setup wizard and health report."""

    def __init__(
        self,
        console: Console | None = None,
        config: MindpalConfig | None = None,
        config_path: Path | None = None,
        ping: Ping = ping_backend,
    ) -> None:
        """Initialize the setup wizard.

        Args:
            console: Rich console for output. Creates default if not provided.
            config: Configuration to check. Loaded from file and env if not provided.
            config_path: Where the configuration is saved.
            ping: Backend probe, replaceable in tests.
        """
        self.console = console or Console()
        self.config_path = config_path or CONFIG_PATH
        self.config = config or load_config(self.config_path)
        self._ping = ping
        self._checks: list[CheckResult] = []

    def run(self, check_only: bool = False) -> SetupResult:
        """Run the setup wizard.

        Args:
            check_only: If True, only check status without making changes.

        Returns:
            SetupResult with all check results.
        """
        self._checks = []
        config_saved = False

        self.console.print()
        self.console.print(
            Panel.fit(
                "[bold blue]MindPal Setup[/bold blue]\nTasks, mood tracking and AI companion",
                border_style="blue",
            )
        )
        self.console.print()

        if self._check_credentials():
            self._check_backend()
        else:
            self._checks.append(
                CheckResult(
                    name="Backend reachable",
                    status=CheckStatus.SKIP,
                    message="Skipped until credentials are configured",
                )
            )
        self._check_services()

        if not check_only:
            config_saved = self._save_config()

        self._print_health_report()

        failures = [c for c in self._checks if c.status == CheckStatus.FAIL]
        return SetupResult(
            success=not failures,
            checks=self._checks,
            config_saved=config_saved,
            config_path=self.config_path if config_saved else None,
        )

    def _check_credentials(self) -> bool:
        backend = self.config.backend
        missing = backend.missing_keys()
        if missing:
            self._checks.append(
                CheckResult(
                    name="Backend credentials",
                    status=CheckStatus.FAIL,
                    message="Missing: " + ", ".join(missing),
                    fix_instructions=(
                        f"Set {URL_ENV_VARS[0]} and {KEY_ENV_VARS[0]} in your environment"
                    ),
                )
            )
            return False
        if not backend.is_configured:
            self._checks.append(
                CheckResult(
                    name="Backend credentials",
                    status=CheckStatus.FAIL,
                    message="Placeholder or malformed values",
                    details=backend.url,
                    fix_instructions="Use the project URL and anon key from your backend dashboard",
                )
            )
            return False
        self._checks.append(
            CheckResult(
                name="Backend credentials",
                status=CheckStatus.PASS,
                message="Configured",
                details=backend.url,
            )
        )
        return True

    def _check_backend(self) -> None:
        """Any HTTP response counts as reachable."""
        try:
            status = asyncio.run(self._ping(self.config))
        except (requests.exceptions.RequestException, OSError, TimeoutError) as e:
            logger.debug(f"Backend probe failed: {e}")
            self._checks.append(
                CheckResult(
                    name="Backend reachable",
                    status=CheckStatus.FAIL,
                    message="No response from backend",
                    details=str(e),
                    fix_instructions="Check your network connection and the backend URL",
                )
            )
            return

        self._checks.append(
            CheckResult(
                name="Backend reachable",
                status=CheckStatus.PASS,
                message=f"HTTP {status}",
            )
        )

    def _check_services(self) -> None:
        services = self.config.services
        for field_name, label in SERVICE_LABELS.items():
            if getattr(services, field_name):
                self._checks.append(
                    CheckResult(name=f"{label} key", status=CheckStatus.PASS, message="Configured")
                )
            else:
                self._checks.append(
                    CheckResult(
                        name=f"{label} key",
                        status=CheckStatus.WARN,
                        message="Not set; feature disabled",
                        fix_instructions=f"Set {SERVICE_KEY_ENV_VARS[field_name][0]} to enable it",
                    )
                )

    def _save_config(self) -> bool:
        existed = self.config_path.exists()
        if save_config(self.config, self.config_path):
            self._checks.append(
                CheckResult(
                    name="Configuration",
                    status=CheckStatus.PASS,
                    message="Config updated" if existed else "Config created",
                    details=str(self.config_path),
                )
            )
            return True

        self._checks.append(
            CheckResult(
                name="Configuration",
                status=CheckStatus.FAIL,
                message="Failed to write config",
                details=str(self.config_path),
                fix_instructions=f"Ensure write permission for {self.config_path.parent}",
            )
        )
        return False

    def _print_health_report(self) -> None:
        """Print the health report summary."""
        self.console.print()

        table = Table(title="Setup Check Results", show_header=True, header_style="bold")
        table.add_column("Check", style="cyan")
        table.add_column("Status", justify="center")
        table.add_column("Details")

        status_icons = {
            CheckStatus.PASS: "[green]PASS[/green]",
            CheckStatus.WARN: "[yellow]WARN[/yellow]",
            CheckStatus.FAIL: "[red]FAIL[/red]",
            CheckStatus.SKIP: "[dim]SKIP[/dim]",
        }

        for check in self._checks:
            details = check.message
            if check.details:
                details += f"\n[dim]{check.details}[/dim]"
            table.add_row(check.name, status_icons[check.status], details)

        self.console.print(table)
        self.console.print()

        failures = [c for c in self._checks if c.status == CheckStatus.FAIL]
        warnings = [c for c in self._checks if c.status == CheckStatus.WARN]

        for title, style, checks in (
            ("Issues requiring attention:", "red", failures),
            ("Warnings:", "yellow", warnings),
        ):
            if not checks:
                continue
            self.console.print(f"[{style}]{title}[/{style}]")
            for check in checks:
                if check.fix_instructions:
                    self.console.print(f"\n[bold]{check.name}:[/bold]")
                    self.console.print(f"  {check.fix_instructions}")
            self.console.print()

        if not failures:
            self.console.print(
                Panel.fit("[green]Setup complete![/green]\nMindPal is ready to use.", border_style="green")
            )
        else:
            self.console.print(
                Panel.fit(
                    "[red]Setup incomplete[/red]\nPlease resolve the issues above before using MindPal.",
                    border_style="red",
                )
            )


def run_setup(check_only: bool = False) -> SetupResult:
    """Run the MindPal setup wizard."""
    return SetupWizard().run(check_only=check_only)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the setup wizard.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    import argparse

    parser = argparse.ArgumentParser(
        description="MindPal Setup - validate environment and write configuration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m mindpal.setup          # Run full setup
  python -m mindpal.setup --check  # Just check, don't modify
        """,
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only check status without making changes",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    result = run_setup(check_only=args.check)
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
