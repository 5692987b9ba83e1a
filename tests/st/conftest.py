"""CLI 系统测试共享 fixture"""

from __future__ import annotations

from pathlib import Path

import pytest

from toolshed.utils.logger import reset_logging


@pytest.fixture(autouse=True)
def _clean_logging():
    # main 回调会把根日志器绑定到 CliRunner 的 stderr
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("TOOLSHED_LOG_LEVEL", raising=False)
    monkeypatch.delenv("TOOLSHED_LOG_JSON", raising=False)
