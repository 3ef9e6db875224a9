"""
路由依赖 - 从应用状态取共享组件
"""

from __future__ import annotations

from fastapi import Request

from ..interfaces import IDatasetProvider, ITemplateStore, RequestInvalid
from ..models import Dataset
from ..pipeline import JobManager, Packager
from ..worker import WorkerSession
from .errors import DatasetNotFound
from .schemas import DocxRequest


def get_session(request: Request) -> WorkerSession:
    return request.app.state.session


def get_jobs(request: Request) -> JobManager:
    return request.app.state.jobs


def get_packager(request: Request) -> Packager:
    return request.app.state.packager


def get_templates(request: Request) -> ITemplateStore:
    return request.app.state.templates


def get_datasets(request: Request) -> IDatasetProvider:
    return request.app.state.datasets


def resolve_dataset(body: DocxRequest, provider: IDatasetProvider) -> Dataset:
    """请求体内联数据优先，否则按 dataset_ref 获取"""
    if body.dataset is not None:
        return body.dataset
    if not body.dataset_ref:
        raise RequestInvalid("缺少数据: 需要 dataset 或 dataset_ref")
    try:
        return provider.get_dataset(body.dataset_ref)
    except KeyError as e:
        raise DatasetNotFound(f"数据集不存在: {body.dataset_ref}") from e
