"""
Kernel Boundary & Invariants Contract.

Tests that enforce the escrow kernel's architectural boundaries:

1. escrow_kernel/** may NOT import escrow_config.  The kernel never
   depends upward; configuration is injected as EscrowSettings.

2. escrow_kernel/domain/** is pure: no ORM, no DB driver, no services.

3. Selectors are read-only and never import services.

4. The custody invariants declaration is complete and non-empty.

These tests read source code via AST -- they cannot break anything.
"""

import ast
import glob
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _python_files(root: str) -> list[str]:
    """Return all .py files under a repository-relative directory."""
    return sorted(glob.glob(f"{REPO_ROOT / root}/**/*.py", recursive=True))


def _extract_imports(filepath: str) -> list[tuple[int, str]]:
    """Extract (line_number, module_string) for all imports in a file."""
    try:
        source = Path(filepath).read_text()
        tree = ast.parse(source, filename=filepath)
    except (SyntaxError, UnicodeDecodeError):
        return []

    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                results.append((node.lineno, node.module))
    return results


def _violations(root: str, forbidden: tuple[str, ...]) -> list[str]:
    found: list[str] = []
    for filepath in _python_files(root):
        for lineno, module in _extract_imports(filepath):
            for prefix in forbidden:
                if module == prefix or module.startswith(f"{prefix}."):
                    found.append(f"  {filepath}:{lineno} imports '{module}'")
    return found


# ---------------------------------------------------------------------------
# Test: Kernel has no upward dependencies
# ---------------------------------------------------------------------------

class TestKernelNoUpwardDependencies:
    """escrow_kernel/** must not import escrow_config."""

    def test_kernel_source_found(self):
        assert _python_files("escrow_kernel")

    def test_kernel_does_not_import_config(self):
        violations = _violations("escrow_kernel", ("escrow_config",))
        assert not violations, (
            "Kernel boundary violation -- escrow_kernel/** must not import "
            "escrow_config:\n" + "\n".join(violations)
        )


# ---------------------------------------------------------------------------
# Test: Kernel domain purity
# ---------------------------------------------------------------------------

class TestKernelDomainPurity:
    """escrow_kernel/domain/** must not import ORM, DB or service packages."""

    FORBIDDEN_MODULES = (
        "sqlalchemy",
        "psycopg2",
        "psycopg",
        "sqlite3",
        "escrow_kernel.db",
        "escrow_kernel.models",
        "escrow_kernel.services",
        "escrow_kernel.selectors",
    )

    def test_domain_no_orm_imports(self):
        violations = _violations("escrow_kernel/domain", self.FORBIDDEN_MODULES)
        assert not violations, (
            "Domain purity violation -- escrow_kernel/domain/** must not "
            "import ORM/DB packages:\n" + "\n".join(violations)
        )


# ---------------------------------------------------------------------------
# Test: Read side never reaches into the write side
# ---------------------------------------------------------------------------

class TestSelectorsAreReadOnly:

    def test_selectors_do_not_import_services(self):
        violations = _violations("escrow_kernel/selectors", ("escrow_kernel.services",))
        assert not violations, (
            "Selector boundary violation -- selectors must not import "
            "services:\n" + "\n".join(violations)
        )

    def test_models_do_not_import_upward(self):
        violations = _violations(
            "escrow_kernel/models",
            ("escrow_kernel.services", "escrow_kernel.selectors"),
        )
        assert not violations, (
            "Model boundary violation -- models must not import services "
            "or selectors:\n" + "\n".join(violations)
        )


# ---------------------------------------------------------------------------
# Test: Invariants declaration exists and is complete
# ---------------------------------------------------------------------------

class TestKernelInvariantsDeclaration:
    """The custody invariants contract must be declared and complete."""

    def test_invariants_module_exists(self):
        from escrow_kernel.invariants import ALL_ESCROW_INVARIANTS, EscrowInvariant
        assert len(ALL_ESCROW_INVARIANTS) > 0
        assert ALL_ESCROW_INVARIANTS == frozenset(EscrowInvariant)

    def test_every_invariant_documented(self):
        source = (REPO_ROOT / "escrow_kernel" / "invariants.py").read_text()
        from escrow_kernel.invariants import EscrowInvariant
        for invariant in EscrowInvariant:
            assert f"{invariant.name} = " in source
