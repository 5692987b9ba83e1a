"""包获取模块

- index_client.py: PyPI JSON API 客户端
- sources.py: 来源适配器 Registry/Git/Folder
- acquirer.py: 按来源类型分派的协调器
"""

from toolshed.services.acquire.acquirer import Acquirer
from toolshed.services.acquire.index_client import PackageIndexClient, ReleaseArtifact
from toolshed.services.acquire.sources import FolderSource, GitSource, RegistrySource

__all__ = [
    "Acquirer",
    "PackageIndexClient",
    "ReleaseArtifact",
    "RegistrySource",
    "GitSource",
    "FolderSource",
]
