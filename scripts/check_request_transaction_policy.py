"""Pre-commit helper enforcing the one-``db.begin()``-per-unit-of-work rule.

Routes and services never end a transaction by hand; every unit of work is an
``async with db.begin():`` block, which commits or rolls back on exit. CLI
entry points are not checked.

Usage:
    python scripts/check_request_transaction_policy.py [paths...]

Without paths, every module under ``highlander/routes`` and
``highlander/services`` is checked.
"""

from __future__ import annotations

import ast
import sys
from pathlib import Path

_FORBIDDEN_ATTRS = {"commit", "rollback"}
_DEFAULT_ROOTS = ("highlander/routes", "highlander/services")


def _iter_python_files(paths: list[Path]) -> list[Path]:
    files: list[Path] = []
    for path in paths:
        if path.is_dir():
            files.extend(sorted(path.rglob("*.py")))
        elif path.suffix == ".py":
            files.append(path)
    return files


def find_violations(paths: list[Path]) -> list[str]:
    """``path:line`` for every ``.commit()`` / ``.rollback()`` call."""
    violations: list[str] = []
    for path in _iter_python_files(paths):
        tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
        for node in ast.walk(tree):
            if (
                isinstance(node, ast.Call)
                and isinstance(node.func, ast.Attribute)
                and node.func.attr in _FORBIDDEN_ATTRS
            ):
                violations.append(f"{path}:{node.lineno}")
    return violations


def main(argv: list[str]) -> int:
    if len(argv) > 1:
        paths = [Path(arg) for arg in argv[1:]]
    else:
        repo_root = Path(__file__).resolve().parent.parent
        paths = [repo_root / root for root in _DEFAULT_ROOTS]

    violations = find_violations(paths)
    if not violations:
        return 0

    sys.stderr.write(
        "\n".join(
            [
                "Explicit commit()/rollback() calls are forbidden in routes and"
                " services. Wrap the unit of work in `async with db.begin(): ...`.",
                "",
                "Violations:",
                *sorted(violations),
                "",
            ]
        )
    )
    return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv))
