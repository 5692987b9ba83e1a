"""统一异常体系

所有业务异常继承 ToolshedError，每个子类带一个稳定的 code。
核心层只负责抛出，CLI 层据此输出友好提示并返回退出码 1。
"""

from __future__ import annotations


class ToolshedError(Exception):
    """框架基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidReferenceError(ToolshedError):
    """包引用为空或格式无效"""

    code = "INVALID_REFERENCE"


class PackageNotFoundError(ToolshedError):
    """包在来源中不存在，或未在本地清单中安装"""

    code = "PACKAGE_NOT_FOUND"


class SourceUnreachableError(ToolshedError):
    """包索引无法访问（网络、超时、响应异常）"""

    code = "SOURCE_UNREACHABLE"


class CloneFailedError(ToolshedError):
    """git clone 失败（认证、网络或仓库不存在）"""

    code = "CLONE_FAILED"


class PathNotFoundError(ToolshedError):
    """本地目录在获取时已不存在"""

    code = "PATH_NOT_FOUND"


class NoBuildableProjectError(ToolshedError):
    """获取的内容中找不到可构建的项目"""

    code = "NO_BUILDABLE_PROJECT"


class BuildFailedError(ToolshedError):
    """工具链返回非零退出码，output 保存诊断输出"""

    code = "BUILD_FAILED"

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class AlreadyInstalledError(ToolshedError):
    """同名包已安装"""

    code = "ALREADY_INSTALLED"


class FilesInUseError(ToolshedError):
    """安装目录被占用或无权限删除"""

    code = "FILES_IN_USE"


class ManifestCorruptError(ToolshedError):
    """清单文件内容损坏"""

    code = "MANIFEST_CORRUPT"


class ConfigError(ToolshedError):
    """配置文件内容无效"""

    code = "CONFIG_ERROR"


class ExecutionError(ToolshedError):
    """子进程无法启动或执行超时"""

    code = "EXECUTION_ERROR"
