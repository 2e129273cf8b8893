#!/usr/bin/env python3
"""Run the formatters in check mode, the linter and the test suite.

Steps run in order and all of them run even if an earlier one fails; the
exit code is non-zero when any step failed. Requires the `dev` extra.
"""

from pathlib import Path
import subprocess
import sys

ROOT = Path(__file__).parent

CHECKS: list[tuple[list[str], str]] = [
    (["black", ".", "--check"], "Black format check"),
    (["isort", ".", "--check-only"], "isort import order"),
    (["ruff", "check", "."], "Ruff lint"),
    (["pytest", "-q"], "pytest"),
]


def run_step(args: list[str], description: str) -> tuple[bool, str]:
    cmd = [sys.executable, "-m", *args]
    print(f"\n{'=' * 60}\n{description}: {' '.join(cmd)}\n{'=' * 60}")
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=False, cwd=ROOT)
    except OSError as e:
        print(f"FAILED to start: {e}")
        return False, str(e)
    output = (result.stdout + result.stderr).strip()
    print("OK" if result.returncode == 0 else "FAILED")
    if output:
        print(output)
    return result.returncode == 0, output


def main() -> None:
    results = [(description, *run_step(args, description)) for args, description in CHECKS]

    print(f"\n{'=' * 60}\nSummary\n{'=' * 60}")
    for description, success, _ in results:
        print(f"{description}: {'passed' if success else 'FAILED'}")
    sys.exit(0 if all(success for _, success, _ in results) else 1)


if __name__ == "__main__":
    main()
