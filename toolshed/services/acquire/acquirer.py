"""获取协调器

按 SourceKind 分派到对应的来源适配器。新增来源类型 = 新增一个适配器并
在 handlers 中登记，不做开放式插件发现。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from toolshed.core.exceptions import InvalidReferenceError
from toolshed.core.models import (
    InstallOptions,
    PackageReference,
    SourceKind,
    StagedContent,
)

logger = logging.getLogger(__name__)


class Source(Protocol):
    """来源适配器协议"""

    def acquire(
        self, ref: PackageReference, options: InstallOptions, staging: Path,
    ) -> StagedContent:
        ...


class Acquirer:
    """把包引用获取到 staging 目录"""

    def __init__(
        self,
        registry_source: Source,
        git_source: Source,
        folder_source: Source,
    ) -> None:
        self.handlers: dict[SourceKind, Source] = {
            SourceKind.REGISTRY: registry_source,
            SourceKind.REPOSITORY: git_source,
            SourceKind.LOCAL_FOLDER: folder_source,
        }

    def acquire(
        self, ref: PackageReference, options: InstallOptions, staging: Path,
    ) -> StagedContent:
        """获取内容；失败时 staging 保留，由调用方清理"""
        handler = self.handlers.get(ref.kind)
        if handler is None:
            raise InvalidReferenceError(f"不支持的来源类型: {ref.kind}")
        staging.mkdir(parents=True, exist_ok=True)
        logger.info("获取 %s (%s) -> %s", ref.locator, ref.kind.value, staging)
        return handler.acquire(ref, options, staging)
