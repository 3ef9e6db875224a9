"""
配置层 - 加载运行期配置

职责：
- 加载 documents/runtime.yaml（运行期参数）
- 提供类型安全的配置访问接口
"""

from .runtime_config import (
    LayoutConfig,
    LimitsConfig,
    LocaleConfig,
    RuntimeConfig,
    WorkerConfig,
    get_config,
    reload_config,
)

__all__ = [
    "RuntimeConfig",
    "LayoutConfig",
    "LocaleConfig",
    "WorkerConfig",
    "LimitsConfig",
    "get_config",
    "reload_config",
]
