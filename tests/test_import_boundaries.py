from __future__ import annotations

import importlib.util
from pathlib import Path
from types import ModuleType

ROOT = Path(__file__).resolve().parents[1]


def _load_checker_module() -> ModuleType:
    module_path = ROOT / "tools" / "check_imports.py"
    spec = importlib.util.spec_from_file_location("check_imports_tool", module_path)
    assert spec is not None
    loader = spec.loader
    assert loader is not None
    module = importlib.util.module_from_spec(spec)
    loader.exec_module(module)
    return module


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_check_file_allows_core_importing_domain(tmp_path: Path) -> None:
    checker = _load_checker_module()
    source_root = tmp_path / "src" / "story_graph"
    core_file = source_root / "core" / "rules.py"
    _write(core_file, "from story_graph.domain.models import Node\n")
    assert checker.check_file(core_file, source_root) == []


def test_check_file_rejects_core_importing_adapters(tmp_path: Path) -> None:
    checker = _load_checker_module()
    source_root = tmp_path / "src" / "story_graph"
    core_file = source_root / "core" / "rules.py"
    _write(core_file, "from story_graph.adapters import sqlite_graph_store\n")
    violations = checker.check_file(core_file, source_root)
    assert len(violations) == 1
    assert "core must not import story_graph.adapters" in violations[0]


def test_check_file_rejects_relative_domain_import_of_core(tmp_path: Path) -> None:
    checker = _load_checker_module()
    source_root = tmp_path / "src" / "story_graph"
    domain_file = source_root / "domain" / "models.py"
    _write(domain_file, "from ..core import graph_rules\n")
    violations = checker.check_file(domain_file, source_root)
    assert violations == [f"{domain_file}: domain must not import story_graph.core"]


def test_check_file_rejects_package_level_layer_import(tmp_path: Path) -> None:
    checker = _load_checker_module()
    source_root = tmp_path / "src" / "story_graph"
    app_file = source_root / "application" / "lifecycle.py"
    _write(app_file, "from story_graph import api, domain\n")
    violations = checker.check_file(app_file, source_root)
    assert violations == [f"{app_file}: application must not import story_graph.api"]


def test_repository_source_tree_respects_layer_rules() -> None:
    checker = _load_checker_module()
    assert checker.check_import_boundaries() == []
