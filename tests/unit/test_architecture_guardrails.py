from __future__ import annotations

import ast
import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

SRC = Path(__file__).resolve().parents[2] / "src"
PACKAGE = SRC / "lorekeeper"
ADAPTER_LAYERS = {"infrastructure", "presentation"}


def _module_name(path: Path) -> str:
    return ".".join(path.relative_to(SRC).with_suffix("").parts)


def _layer(module: str) -> str:
    parts = module.split(".")
    return parts[1] if len(parts) > 2 else ""


def _imported_modules(module: str, tree: ast.Module, known: set[str]) -> set[str]:
    """Internal modules ``module`` imports, with ``from pkg import mod`` resolved to ``pkg.mod``."""
    found: set[str] = set()
    package_parts = module.split(".")[:-1]
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            targets = {alias.name for alias in node.names if alias.name in known}
        elif isinstance(node, ast.ImportFrom):
            base = node.module or ""
            if node.level:
                anchor = package_parts[: len(package_parts) - node.level + 1]
                base = ".".join(anchor + ([base] if base else []))
            targets = {f"{base}.{alias.name}" for alias in node.names} & known
            if not targets and base in known:
                targets = {base}
        else:
            continue
        found |= targets - {module}
    return found


def _import_graph() -> tuple[dict[str, set[str]], dict[str, ast.Module]]:
    trees = {_module_name(path): ast.parse(path.read_text(encoding="utf-8")) for path in PACKAGE.rglob("*.py")}
    known = set(trees)
    return {module: _imported_modules(module, tree, known) for module, tree in trees.items()}, trees


def _cycle_from(graph: dict[str, set[str]]) -> list[str]:
    visiting: list[str] = []
    done: set[str] = set()

    def walk(module: str) -> list[str]:
        if module in visiting:
            return visiting[visiting.index(module):] + [module]
        if module in done:
            return []
        visiting.append(module)
        for target in sorted(graph[module]):
            cycle = walk(target)
            if cycle:
                return cycle
        visiting.pop()
        done.add(module)
        return []

    for module in sorted(graph):
        cycle = walk(module)
        if cycle:
            return cycle
    return []


class ArchitectureGuardrailTests(unittest.TestCase):
    def setUp(self) -> None:
        self.graph, self.trees = _import_graph()

    def _violations(self, source_layer: str, forbidden) -> list[str]:
        return sorted(
            f"{source} -> {target}"
            for source, targets in self.graph.items()
            if _layer(source) == source_layer
            for target in targets
            if forbidden(target)
        )

    def test_graph_sees_package_and_relative_imports(self) -> None:
        self.assertIn(
            "lorekeeper.application.services.character_selector",
            self.graph["lorekeeper.application.services.event_router"],
        )
        self.assertIn(
            "lorekeeper.infrastructure.db.sql.connection",
            self.graph["lorekeeper.infrastructure.db.sql.state_repo"],
        )

    def test_domain_imports_nothing_above_it(self) -> None:
        violations = self._violations("domain", lambda target: _layer(target) != "domain")

        self.assertEqual([], violations)

    def test_application_never_reaches_adapters(self) -> None:
        violations = self._violations(
            "application",
            lambda target: _layer(target) in ADAPTER_LAYERS or target == "lorekeeper.bootstrap",
        )

        self.assertEqual([], violations)

    def test_import_graph_is_acyclic(self) -> None:
        cycle = _cycle_from(self.graph)

        self.assertEqual([], cycle, " -> ".join(cycle))

    def test_domain_modules_postpone_annotations(self) -> None:
        missing = sorted(
            module
            for module, tree in self.trees.items()
            if _layer(module) == "domain"
            and not any(
                isinstance(node, ast.ImportFrom)
                and node.module == "__future__"
                and any(alias.name == "annotations" for alias in node.names)
                for node in tree.body
            )
        )

        self.assertEqual([], missing)


if __name__ == "__main__":
    unittest.main()
