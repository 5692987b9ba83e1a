"""toolshed - 命令行工具全局包管理器"""

__version__ = "1.0.0"
