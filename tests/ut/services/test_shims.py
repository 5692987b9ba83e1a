"""ShimLinker 单元测试"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from toolshed.services.shims import ShimLinker

pytestmark = pytest.mark.skipif(os.name == "nt", reason="POSIX 符号链接")


@pytest.fixture()
def target(tmp_path: Path) -> Path:
    t = tmp_path / "venv" / "bin" / "tool"
    t.parent.mkdir(parents=True)
    t.write_text("#!/bin/sh\n")
    return t


class TestShimLinker:

    def test_link_and_target(self, tmp_path: Path, target: Path) -> None:
        linker = ShimLinker(tmp_path / "bin")
        shim = linker.link("tool", target)
        assert shim == tmp_path / "bin" / "tool"
        assert shim.is_symlink()
        assert os.readlink(shim) == str(target)

    def test_relink_replaces(self, tmp_path: Path, target: Path) -> None:
        other = target.parent / "other"
        other.write_text("")
        linker = ShimLinker(tmp_path / "bin")
        linker.link("tool", target)
        linker.link("tool", other)
        assert os.readlink(tmp_path / "bin" / "tool") == str(other)
        assert sorted(p.name for p in (tmp_path / "bin").iterdir()) == ["tool"]

    def test_unlink(self, tmp_path: Path, target: Path) -> None:
        linker = ShimLinker(tmp_path / "bin")
        linker.link("tool", target)
        assert linker.unlink("tool") is True
        assert linker.unlink("tool") is False
        assert not (tmp_path / "bin" / "tool").is_symlink()

    def test_unlink_dangling(self, tmp_path: Path, target: Path) -> None:
        linker = ShimLinker(tmp_path / "bin")
        linker.link("tool", target)
        target.unlink()
        assert linker.unlink("tool") is True

    def test_on_path(self, tmp_path: Path) -> None:
        linker = ShimLinker(tmp_path / "bin")
        assert linker.on_path({"PATH": os.pathsep.join(["/usr/bin", str(tmp_path / "bin")])})
        assert not linker.on_path({"PATH": "/usr/bin"})
        assert not linker.on_path({})
