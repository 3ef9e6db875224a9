"""
流水线模块 - 生成编排、打包、任务、协作方存储

子模块：
- coordinator: 生成协调器（单文档/批量、进度、取消）
- packager: 多文档ZIP打包与manifest
- job_manager: 服务端异步任务
- stores: 模板存储与数据集来源
"""

from .coordinator import GenerationCoordinator, GenerationStats
from .packager import Packager
from .stores import FileTemplateStore, InMemoryDatasetProvider, XlsxDatasetProvider
from .job_manager import JobManager

__all__ = [
    "GenerationCoordinator",
    "GenerationStats",
    "Packager",
    "FileTemplateStore",
    "InMemoryDatasetProvider",
    "XlsxDatasetProvider",
    "JobManager",
]
