"""
Import-boundary enforcement.

1. Kernel isolation     -- ledger_kernel/** imports nothing from the
                           config, engines, modules or services layers.
2. Engine purity        -- ledger_engines/** may not import DB, ORM,
                           models, HTTP or the layers above the kernel.
3. Engine no-impure     -- ledger_engines/** may not read the wall clock
                           or the environment.
4. Config isolation     -- ledger_config/** depends only on itself and the
                           kernel logger.
5. Pure statements      -- reporting/statements.py has no I/O imports.
6. HTTP confinement     -- httpx is used only by the FX module.
7. Service boundary     -- ledger_modules/** may use the RBAC authority
                           and nothing else from ledger_services.

All scanning is done via AST -- these tests are read-only.
"""

import ast
import glob
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]


def _python_files(package: str) -> list[str]:
    return sorted(glob.glob(str(ROOT / package / "**" / "*.py"), recursive=True))


def _extract_imports(filepath: str) -> list[tuple[int, str]]:
    """Return (line_number, module_string) for every import in *filepath*."""
    tree = ast.parse(Path(filepath).read_text(), filename=filepath)
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _matches_any(module: str, prefixes: tuple[str, ...]) -> bool:
    return any(module == prefix or module.startswith(f"{prefix}.") for prefix in prefixes)


def _violations(package: str, forbidden: tuple[str, ...], allowed: tuple[str, ...] = ()) -> list[str]:
    found = []
    for filepath in _python_files(package):
        for lineno, module in _extract_imports(filepath):
            if _matches_any(module, forbidden) and not _matches_any(module, allowed):
                found.append(f"{Path(filepath).relative_to(ROOT)}:{lineno} imports {module}")
    return found


class TestKernelIsolation:
    def test_kernel_never_imports_outward(self):
        assert _violations(
            "ledger_kernel",
            ("ledger_config", "ledger_engines", "ledger_modules", "ledger_services"),
        ) == []

    def test_packages_found(self):
        assert _python_files("ledger_kernel")
        assert _python_files("ledger_modules")


class TestEnginePurity:
    FORBIDDEN = (
        "sqlalchemy",
        "httpx",
        "ledger_kernel.db",
        "ledger_kernel.models",
        "ledger_kernel.selectors",
        "ledger_kernel.services",
        "ledger_config",
        "ledger_modules",
        "ledger_services",
    )

    def test_no_io_imports(self):
        assert _violations("ledger_engines", self.FORBIDDEN) == []

    def test_no_wall_clock_or_environment(self):
        impure = {"datetime.now", "datetime.utcnow", "date.today", "os.environ", "os.getenv"}
        found = []
        for filepath in _python_files("ledger_engines"):
            tree = ast.parse(Path(filepath).read_text(), filename=filepath)
            for node in ast.walk(tree):
                if isinstance(node, ast.Attribute) and isinstance(node.value, ast.Name):
                    name = f"{node.value.id}.{node.attr}"
                    if name in impure:
                        found.append(f"{Path(filepath).name}:{node.lineno} uses {name}")
        assert found == []


class TestConfigIsolation:
    def test_config_depends_only_on_kernel_logging(self):
        assert _violations(
            "ledger_config",
            ("ledger_kernel", "ledger_engines", "ledger_modules", "ledger_services"),
            allowed=("ledger_kernel.logging_config",),
        ) == []


class TestPureStatements:
    def test_statements_have_no_io(self):
        path = ROOT / "ledger_modules" / "reporting" / "statements.py"
        modules = [module for _, module in _extract_imports(str(path))]

        assert not [m for m in modules if _matches_any(m, ("sqlalchemy", "httpx", "ledger_kernel.db"))]


class TestHttpConfinement:
    def test_httpx_only_in_fx_module(self):
        found = []
        for package in ("ledger_kernel", "ledger_engines", "ledger_config", "ledger_services", "ledger_modules"):
            for filepath in _python_files(package):
                if "/ledger_modules/fx/" in filepath.replace("\\", "/"):
                    continue
                for lineno, module in _extract_imports(filepath):
                    if _matches_any(module, ("httpx",)):
                        found.append(f"{filepath}:{lineno}")
        assert found == []


class TestServiceBoundary:
    def test_modules_use_only_rbac_from_services(self):
        assert _violations(
            "ledger_modules",
            ("ledger_services",),
            allowed=("ledger_services.rbac_authority",),
        ) == []

    def test_rbac_does_not_reach_into_modules(self):
        path = ROOT / "ledger_services" / "rbac_authority.py"
        modules = [module for _, module in _extract_imports(str(path))]

        assert not [m for m in modules if _matches_any(m, ("ledger_modules",))]
