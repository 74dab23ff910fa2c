from __future__ import annotations

from pathlib import Path

import pytest

from jdk_layouts import make_legacy_jdk, make_modular_jdk


@pytest.fixture(scope="session")
def repo_root() -> Path:
    root = Path(__file__).resolve().parents[1]
    if root.name == "mutants":
        return root.parent
    return root


@pytest.fixture
def legacy_jdk(tmp_path: Path) -> Path:
    return make_legacy_jdk(tmp_path / "jdk8")


@pytest.fixture
def modular_jdk(tmp_path: Path) -> Path:
    return make_modular_jdk(tmp_path / "jdk21")
