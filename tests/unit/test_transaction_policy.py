"""Policy tests to keep request code aligned with transaction conventions."""

from __future__ import annotations

import ast
import importlib.util
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]


def test_routes_and_services_never_commit_or_rollback() -> None:
    """Units of work end with their ``db.begin()`` block, not by hand."""
    roots = (REPO_ROOT / "highlander" / "routes", REPO_ROOT / "highlander" / "services")

    violations: list[str] = []
    for root in roots:
        for path in root.rglob("*.py"):
            tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
            for node in ast.walk(tree):
                if (
                    isinstance(node, ast.Call)
                    and isinstance(node.func, ast.Attribute)
                    and node.func.attr in {"commit", "rollback"}
                ):
                    violations.append(f"{path.relative_to(REPO_ROOT)}:{node.lineno}")

    assert not violations, (
        "Explicit commit()/rollback() calls found in request-bounded code:\n"
        + "\n".join(sorted(violations))
    )


def _load_policy_script():
    path = REPO_ROOT / "scripts" / "check_request_transaction_policy.py"
    spec = importlib.util.spec_from_file_location("check_request_transaction_policy", path)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_policy_script_flags_commit(tmp_path: Path) -> None:
    bad = tmp_path / "bad_service.py"
    bad.write_text("async def f(db):\n    await db.commit()\n", encoding="utf-8")
    good = tmp_path / "good_service.py"
    good.write_text(
        "async def f(db):\n    async with db.begin():\n        pass\n", encoding="utf-8"
    )

    script = _load_policy_script()
    assert script.find_violations([good]) == []
    assert script.find_violations([tmp_path]) == [f"{bad}:2"]
    assert script.main(["check", str(bad)]) == 1


def test_policy_script_passes_on_repo() -> None:
    assert _load_policy_script().main(["check"]) == 0
