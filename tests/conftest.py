"""Shared pytest fixtures: fake node_modules trees and a scripted strategy."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from cdn_externals.models import CdnDescriptor


def _make_package(
    root: Path,
    name: str,
    version: str,
    dependencies: dict[str, str] | None = None,
    peer_dependencies: dict[str, str] | None = None,
) -> Path:
    pkg_dir = root / "node_modules" / name
    pkg_dir.mkdir(parents=True, exist_ok=True)
    data: dict = {"name": name, "version": version}
    if dependencies is not None:
        data["dependencies"] = dependencies
    if peer_dependencies is not None:
        data["peerDependencies"] = peer_dependencies
    (pkg_dir / "package.json").write_text(json.dumps(data))
    return pkg_dir


def _wire(name: str, var: str, version: str = "1.0.0", path: str = "/dist/index.min.js", **extra) -> dict:
    return {
        "name": name,
        "var": var,
        "version": version,
        "path": path,
        "url": f"https://cdn.example/{name}@{version}{path}",
        **extra,
    }


class ScriptedStrategy:
    """Resolution strategy answering from a dict, recording every call."""

    def __init__(self, answers: dict[str, dict | None], delay: float = 0.0) -> None:
        self.answers = answers
        self.delay = delay
        self.calls: list[tuple[str, str, str]] = []

    async def resolve(self, package_name: str, version: str, environment: str):
        self.calls.append((package_name, version, environment))
        await asyncio.sleep(self.delay)
        answer = self.answers.get(package_name)
        if answer is None:
            return None
        return CdnDescriptor.coerce({**answer, "version": version})

    def called(self, package_name: str) -> int:
        return sum(1 for name, _, _ in self.calls if name == package_name)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Project root with an empty node_modules and a src/ dir."""
    (tmp_path / "package.json").write_text(json.dumps({"name": "app", "version": "1.0.0"}))
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "src").mkdir()
    return tmp_path


@pytest.fixture
def src(project: Path) -> Path:
    return project / "src"


@pytest.fixture
def install(project: Path):
    """``install(name, version, ...)`` into the project (or into ``root=``)."""

    def _install(
        name: str, version: str, dependencies=None, peer_dependencies=None, root: Path | None = None
    ) -> Path:
        return _make_package(root or project, name, version, dependencies, peer_dependencies)

    return _install


@pytest.fixture
def wire():
    """Build a strategy answer in the camelCase wire shape."""
    return _wire


@pytest.fixture
def scripted():
    """The ScriptedStrategy class, for tests that need their own answers."""
    return ScriptedStrategy
