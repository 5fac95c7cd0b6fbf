#!/usr/bin/env python3
"""
Project healthcheck script.

Runs a sequence of checks to verify the integrity of the toolkit:
  1) run_tests.py: Static syntax and structure checks.
  2) check_binding.py: The HTTP transport binding is interceptable.
  3) check_binding.py: A built-in function is rejected.
  4) pytest: The unit tests, with no network access required.

Exits non-zero if any step fails.
"""

from __future__ import annotations

import subprocess
import sys
from typing import List, Tuple

from rich.console import Console
from rich.panel import Panel

import httpget

console = Console()


def run_cmd(cmd: List[str], env: dict | None = None) -> Tuple[int, str]:
    """Runs a command and captures its output.

    Args:
        cmd (List[str]): The command and its arguments.
        env (dict | None): Environment variables to use.

    Returns:
        Tuple[int, str]: The return code and the combined stdout/stderr output.
    """
    try:
        proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, env=env)
        out, _ = proc.communicate()
        text = out.decode('utf-8', errors='replace')
        return proc.returncode, text
    except FileNotFoundError as exc:
        return 127, f"Command not found: {' '.join(cmd)}\n{exc}"
    except OSError as exc:
        return 1, f"Error running: {' '.join(cmd)}\n{exc}"


def main() -> int:
    """Main healthcheck execution routine.

    Returns:
        int: 0 if all checks pass, 1 otherwise.
    """
    python = sys.executable or 'python3'
    steps = [
        ([python, 'run_tests.py'], None, 'Static checks'),
        ([python, 'check_binding.py', httpget.TRANSPORT, '--require-supported'], None, 'Transport is interceptable'),
        ([python, 'check_binding.py', 'os.isatty', '--require-unsupported'], None, 'Built-ins are rejected'),
        ([python, '-m', 'pytest', '-q', 'tests', 'unit_tests'], None, 'Unit tests'),
    ]

    overall_ok = True
    console.print(Panel.fit("[bold blue]netstub Health Check[/bold blue]"))

    for cmd, env, label in steps:
        console.rule(f"[bold]{label}[/bold]")
        code, out = run_cmd(cmd, env=env)
        if code == 0:
            console.print("[green]✔ PASS[/green]")
            console.print(out, style="dim")
        else:
            console.print(f"[red]✖ FAIL[/red] (exit code {code})")
            console.print(out, style="red")
            overall_ok = False

    if overall_ok:
        console.print(Panel("[bold green]All health checks passed.[/bold green]", expand=False))
        return 0
    console.print(Panel("[bold red]Some health checks failed.[/bold red]", expand=False))
    return 1


if __name__ == '__main__':
    raise SystemExit(main())
