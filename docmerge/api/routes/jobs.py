"""异步批量生成任务路由

Endpoints:
    POST /api/jobs                  提交批量生成，返回任务ID
    GET  /api/jobs/{job_id}         查询状态与进度
    POST /api/jobs/{job_id}/cancel  取消任务
    GET  /api/jobs/{job_id}/archive 下载产物ZIP
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from ...interfaces import IDatasetProvider
from ...models import Job
from ...models.request import sanitize_name
from ...pipeline import JobManager
from ...pipeline.packager import ZIP_MEDIA_TYPE
from ..deps import get_datasets, get_jobs, resolve_dataset
from ..schemas import DocxRequest, JobResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


@router.post("", response_model=JobResponse, status_code=202)
def submit_job(
    body: DocxRequest,
    jobs: JobManager = Depends(get_jobs),
    datasets: IDatasetProvider = Depends(get_datasets),
) -> JobResponse:
    """提交批量生成任务"""
    dataset = resolve_dataset(body, datasets)
    job = jobs.submit(body.to_generation_request(dataset, batch=True))
    return to_response(job)


@router.get("/{job_id}", response_model=JobResponse)
def get_job(job_id: str, jobs: JobManager = Depends(get_jobs)) -> JobResponse:
    """查询任务"""
    return to_response(_require_job(jobs, job_id))


@router.post("/{job_id}/cancel", response_model=JobResponse)
def cancel_job(job_id: str, jobs: JobManager = Depends(get_jobs)) -> JobResponse:
    """取消任务"""
    job = _require_job(jobs, job_id)
    if not jobs.cancel_job(job_id):
        raise HTTPException(status_code=400, detail=f"任务已结束，无法取消: {job.status.value}")
    return to_response(jobs.get_job(job_id))


@router.get("/{job_id}/archive")
def download_archive(job_id: str, jobs: JobManager = Depends(get_jobs)) -> FileResponse:
    """下载任务产物"""
    job = _require_job(jobs, job_id)
    path = jobs.get_archive_path(job_id)
    if path is None:
        raise HTTPException(status_code=404, detail=f"任务尚无产物: {job.status.value}")
    base = sanitize_name(job.template_name) or "documents"
    return FileResponse(path, media_type=ZIP_MEDIA_TYPE, filename=f"{base}.zip")


def _require_job(jobs: JobManager, job_id: str) -> Job:
    job = jobs.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"任务不存在: {job_id}")
    return job


def to_response(job: Job) -> JobResponse:
    return JobResponse(
        job_id=job.job_id,
        status=job.status.value,
        template_name=job.template_name,
        current=job.progress.current,
        total=job.progress.total,
        percent=job.progress.percent,
        message=job.progress.message,
        file_names=list(job.artifacts.file_names),
        errors=list(job.errors),
    )
