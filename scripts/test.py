#!/usr/bin/env python3
"""Test runner script for SchemaDesk.

Wraps pytest with the marker selections used by the suite and optionally
runs the formatting and lint tools declared in the ``dev`` extra.
"""

import argparse
import subprocess
import sys
from pathlib import Path
from typing import List, Optional, Tuple

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def run_command(cmd: List[str], *, cwd: Optional[Path] = PROJECT_ROOT) -> int:
    """Run a command from the project root.

    Args:
        cmd: Command to run as list of strings
        cwd: Working directory for command

    Returns:
        Exit code from command
    """
    print(f"Running: {' '.join(cmd)}")
    return subprocess.run(cmd, cwd=cwd).returncode


def build_pytest_command(
    marker: str = "all",
    *,
    coverage: bool = False,
    html_report: bool = False,
    verbose: bool = False,
    fail_fast: bool = False,
    paths: Optional[List[str]] = None,
) -> List[str]:
    """Assemble the pytest invocation.

    Args:
        marker: Marker expression to select, ``all`` for no selection
        coverage: Measure coverage of the schemadesk package
        html_report: Also write an HTML coverage report
        verbose: Verbose test names
        fail_fast: Stop on first failure
        paths: Test paths, defaults to the configured testpaths

    Returns:
        Command line as a list
    """
    cmd = [sys.executable, "-m", "pytest"]
    if marker != "all":
        cmd.extend(["-m", marker])

    if coverage:
        cmd.extend([
            "--cov=schemadesk",
            "--cov-report=term-missing:skip-covered",
            "--cov-report=xml:coverage.xml",
        ])
        if html_report:
            cmd.append("--cov-report=html:htmlcov")

    if verbose:
        cmd.append("-v")
    if fail_fast:
        cmd.append("-x")
    cmd.append("--durations=10")
    cmd.extend(paths or [])
    return cmd


def run_checks(checks: List[Tuple[List[str], str]]) -> int:
    """Run each tool and report the ones that failed.

    Returns:
        0 if every tool succeeded, 1 otherwise
    """
    failed = []
    for cmd, description in checks:
        print(f"\n{'=' * 60}\n{description}\n{'=' * 60}")
        if run_command(cmd) != 0:
            failed.append(description)

    if failed:
        print("\nFailed checks:")
        for description in failed:
            print(f"  - {description}")
        return 1
    print("\nAll checks passed")
    return 0


QUALITY_CHECKS = [
    (["black", "--check", "src", "tests"], "Code formatting (black)"),
    (["isort", "--check-only", "src", "tests"], "Import sorting (isort)"),
    (["flake8", "src", "tests"], "Code linting (flake8)"),
    (["mypy", "src"], "Type checking (mypy)"),
]

FORMAT_COMMANDS = [
    (["black", "src", "tests"], "Code formatting (black)"),
    (["isort", "src", "tests"], "Import sorting (isort)"),
]


def main() -> int:
    """Main test runner function."""
    parser = argparse.ArgumentParser(
        description="SchemaDesk test runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                          # Run all tests
  %(prog)s --marker database        # Pool, driver and connector tests
  %(prog)s --marker "not slow"      # Skip slow tests
  %(prog)s --coverage --html        # Run with coverage and HTML report
  %(prog)s --quality                # Run lint and type checks only
        """,
    )
    parser.add_argument(
        "--marker", "-m",
        default="all",
        help="Marker expression to run, e.g. unit, database, 'not slow' (default: all)",
    )
    parser.add_argument("--coverage", "-c", action="store_true", help="Enable coverage reporting")
    parser.add_argument("--html", action="store_true", help="Generate HTML coverage report")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output")
    parser.add_argument("--fail-fast", "-x", action="store_true", help="Stop on first failure")
    parser.add_argument("--quality", "-q", action="store_true", help="Run lint and type checks")
    parser.add_argument("--format", "-f", action="store_true", help="Format code with black and isort")
    parser.add_argument("paths", nargs="*", help="Test files or directories")

    args = parser.parse_args()

    if args.format:
        return run_checks(FORMAT_COMMANDS)
    if args.quality:
        return run_checks(QUALITY_CHECKS)

    return run_command(build_pytest_command(
        args.marker,
        coverage=args.coverage,
        html_report=args.html,
        verbose=args.verbose,
        fail_fast=args.fail_fast,
        paths=args.paths,
    ))


if __name__ == "__main__":
    sys.exit(main())
