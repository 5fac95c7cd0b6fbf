#!/usr/bin/env python3
"""
Static checks for the netstub toolkit.

Verifies that the project modules parse, that configuration and packaging
files are present, and reports which 'requests' distribution is importable.
Needs no network access.
"""

import os
import sys
import ast
from pathlib import Path


def print_status(message, status="INFO"):
    """Prints a status message with color coding.

    Args:
        message (str): The message to print.
        status (str): The status level ('INFO', 'SUCCESS', 'WARNING', 'ERROR').
    """
    colors = {
        "INFO": "\033[94m",
        "SUCCESS": "\033[92m",
        "WARNING": "\033[93m",
        "ERROR": "\033[91m",
        "RESET": "\033[0m",
    }
    print(f"{colors.get(status, '')}[{status}]{colors['RESET']} {message}")


def check_python_syntax(file_path):
    """Checks if a file contains valid Python syntax.

    Args:
        file_path (str): Path to the Python file.

    Returns:
        bool: True if syntax is valid, False otherwise.
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            ast.parse(f.read())
        return True
    except SyntaxError as e:
        print_status(f"Syntax error in {file_path}: {e}", "ERROR")
        return False
    except OSError as e:
        print_status(f"Error reading {file_path}: {e}", "ERROR")
        return False


def test_module_syntax():
    """Runs syntax checks on the project modules.

    Returns:
        bool: True if all files pass syntax checks.
    """
    print_status("Checking module syntax...", "INFO")
    modules = [
        ("Bindings module", "bindings.py"),
        ("Interception module", "interception.py"),
        ("Capture records module", "capture.py"),
        ("Config module", "config.py"),
        ("HTTP GET wrapper", "httpget.py"),
        ("Sleeper module", "sleeper.py"),
        ("Console module", "console.py"),
        ("Binding checker", "check_binding.py"),
    ]
    passed = 0
    for label, file_path in modules:
        if os.path.exists(file_path) and check_python_syntax(file_path):
            print_status(f"✓ {label}", "SUCCESS")
            passed += 1
        elif not os.path.exists(file_path):
            print_status(f"✗ {label} (file not found)", "ERROR")
        else:
            print_status(f"✗ {label}", "ERROR")
    print_status(
        f"Module syntax: {passed}/{len(modules)} passed",
        "SUCCESS" if passed == len(modules) else "WARNING",
    )
    return passed == len(modules)


def test_project_files():
    """Checks that configuration, packaging and fixture files exist and are readable.

    Returns:
        bool: True if every file exists and is non-empty.
    """
    print_status("Checking project files...", "INFO")
    files = [
        ("pyproject.toml", "Packaging metadata"),
        ("config.yaml", "Sample configuration"),
        (os.path.join("fixtures", "httpbin_get.yaml"), "Recorded httpbin response"),
    ]
    passed = 0
    for file_path, description in files:
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            print_status(f"✗ {description} ({file_path}) - not found", "WARNING")
            continue
        except OSError as e:
            print_status(f"✗ {description} ({file_path}) - read error: {e}", "ERROR")
            continue
        if content.strip():
            print_status(f"✓ {description} ({file_path})", "SUCCESS")
            passed += 1
        else:
            print_status(f"✗ {description} ({file_path}) - empty file", "WARNING")
    print_status(
        f"Project files: {passed}/{len(files)} found and readable",
        "SUCCESS" if passed == len(files) else "WARNING",
    )
    return passed == len(files)


def test_directory_structure():
    """Verifies that the test directories exist.

    Returns:
        bool: True if required directories exist.
    """
    print_status("Checking directory structure...", "INFO")
    required_dirs = [
        ("tests", "Scenario tests"),
        ("unit_tests", "Unit tests"),
        ("fixtures", "Capture records"),
    ]
    passed = 0
    for dir_path, description in required_dirs:
        if os.path.isdir(dir_path):
            print_status(f"✓ {description} ({dir_path})", "SUCCESS")
            passed += 1
        else:
            print_status(f"✗ {description} ({dir_path}) - not found", "WARNING")
    return passed == len(required_dirs)


def environment_diagnostics():
    """Reports which 'requests' distribution is importable.

    Returns:
        bool: True if requests is installed from site-packages.
    """
    print_status("Environment diagnostics...", "INFO")
    try:
        import requests  # pylint: disable=import-outside-toplevel
    except ImportError as e:
        print_status(f"requests import failed: {e}", "ERROR")
        return False
    path = Path(getattr(requests, '__file__', '') or '').resolve()
    installed = 'site-packages' in path.parts or 'dist-packages' in path.parts
    print_status(
        f"requests {getattr(requests, '__version__', '?')} from {path}",
        "INFO" if installed else "WARNING",
    )
    return installed


def main():
    """Main entry point for the static checks.

    Returns:
        int: Exit code (0 for pass, 1 for fail).
    """
    print_status("Starting static checks...", "INFO")
    print()

    checks = [
        ("Module syntax", test_module_syntax),
        ("Project files", test_project_files),
        ("Directory structure", test_directory_structure),
        ("Environment diagnostics", environment_diagnostics),
    ]

    results = []
    for name, check in checks:
        print_status(f"Running {name}...", "INFO")
        results.append((name, check()))
        print()

    print_status("Summary:", "INFO")
    print("=" * 50)
    passed = sum(1 for _, result in results if result)
    for name, result in results:
        print_status(f"{'✓ PASS' if result else '✗ FAIL'} {name}", "SUCCESS" if result else "ERROR")
    print()
    print_status(
        f"Overall: {passed}/{len(results)} checks passed",
        "SUCCESS" if passed == len(results) else "WARNING",
    )
    return 0 if passed == len(results) else 1


if __name__ == "__main__":
    sys.exit(main())
