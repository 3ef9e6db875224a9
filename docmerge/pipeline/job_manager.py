"""
任务管理器 - 服务端异步批量生成任务

职责：
1. 创建任务并分配ID，状态持久化为 storage_dir/jobs/<id>/job.json
2. 通过工作会话提交批量生成，进度写回任务记录
3. 完成后打包为 archive.zip；失败/取消更新状态
4. 取消任务时向工作线程发送 CANCEL

测试要点：
- test_create_job: 创建任务
- test_get_job: 缓存与磁盘加载
- test_submit_job: 提交后进度与产物
- test_cancel_job: 取消任务
"""

from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import Future
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from ..config import RuntimeConfig, get_config
from ..interfaces import DocMergeError, GenerationCancelled, IJobManager
from ..models import GenerationRequest, GenerationResult, Job, JobStatus, ProgressEvent
from ..worker.protocol import MessageType
from .packager import Packager

if TYPE_CHECKING:
    from ..worker.session import WorkerSession

logger = logging.getLogger(__name__)

ARCHIVE_NAME = "archive.zip"
JOB_FILE = "job.json"


class JobManager(IJobManager):
    """批量生成任务管理"""

    def __init__(
        self,
        session: WorkerSession | None = None,
        config: RuntimeConfig | None = None,
        packager: Packager | None = None,
    ):
        self.config = config or get_config()
        self.session = session
        self.packager = packager or Packager()
        self._jobs: dict[str, Job] = {}
        self._requests: dict[str, str] = {}  # job_id → 工作线程请求ID
        self._lock = threading.RLock()

    def create_job(self, total: int, template_id: str = "", template_name: str = "") -> Job:
        """创建排队中的任务（total 为待生成行数）"""
        job = Job(job_id=str(uuid.uuid4()), template_id=template_id, template_name=template_name)
        job.update_progress(0, total)
        self.update_job(job)
        return job

    def get_job(self, job_id: str) -> Job | None:
        """内存优先，未命中时读 job.json"""
        with self._lock:
            cached = self._jobs.get(job_id)
        if cached is not None:
            return cached

        loaded = self._load_job(job_id)
        if loaded is None:
            return None
        with self._lock:
            return self._jobs.setdefault(job_id, loaded)

    def update_job(self, job: Job) -> None:
        with self._lock:
            self._jobs[job.job_id] = job
            self._persist_job(job)

    def list_jobs(self, status: JobStatus | None = None, limit: int = 100) -> list[Job]:
        """本进程已知的任务，新任务在前"""
        with self._lock:
            jobs = [j for j in self._jobs.values() if status is None or j.status == status]
        return sorted(jobs, key=lambda j: j.created_at, reverse=True)[:limit]

    # ------------------------------------------------------------------
    # 提交与取消
    # ------------------------------------------------------------------

    def submit(self, request: GenerationRequest) -> Job:
        """提交批量生成任务（立即返回，任务在工作线程中执行）"""
        if self.session is None:
            raise DocMergeError("任务管理器未绑定工作会话")

        job = self.create_job(
            total=len(request.selected_indices()),
            template_id=request.template.id,
            template_name=request.template.name,
        )
        job.mark_running()
        self.update_job(job)

        # 持锁提交，cancel_job 总能看到请求ID
        with self._lock:
            try:
                request_id, future = self.session.submit(
                    MessageType.GENERATE_MULTIPLE_DOCUMENTS,
                    request,
                    on_progress=lambda event: self._on_progress(job.job_id, event),
                )
            except DocMergeError as e:
                job.mark_failed(e.message)
                self.update_job(job)
                raise
            self._requests[job.job_id] = request_id
        future.add_done_callback(lambda f: self._on_done(job.job_id, f))

        logger.info(f"任务已提交: job={job.job_id} request={request_id} 行数={job.progress.total}")
        return job

    def cancel_job(self, job_id: str) -> bool:
        """取消任务"""
        job = self.get_job(job_id)
        if not job or job.status.is_terminal:
            return False

        with self._lock:
            request_id = self._requests.get(job_id)

        if request_id is not None and self.session is not None and self.session.is_started:
            # 最终状态由生成结果回调写入
            self.session.cancel(request_id)
            return True

        with self._lock:
            job.mark_cancelled()
            self.update_job(job)
        return True

    def get_archive_path(self, job_id: str) -> Path | None:
        """任务产物ZIP路径（未完成时为None）"""
        job = self.get_job(job_id)
        if not job or job.status != JobStatus.SUCCEEDED or not job.artifacts.archive_zip:
            return None
        path = Path(job.artifacts.archive_zip)
        return path if path.exists() else None

    # ------------------------------------------------------------------
    # 回调（在监听线程中执行）
    # ------------------------------------------------------------------

    def _on_progress(self, job_id: str, event: ProgressEvent) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status.is_terminal:
                return
            job.update_progress(event.current, event.total, event.message)
            self.update_job(job)

    def _on_done(self, job_id: str, future: Future) -> None:
        with self._lock:
            self._requests.pop(job_id, None)
            job = self._jobs.get(job_id)
        # 提交期间已被直接取消的任务保持终止状态
        if job is None or job.status.is_terminal:
            return

        try:
            result: GenerationResult = future.result()
        except GenerationCancelled as e:
            logger.info(f"任务已取消: job={job_id} 已完成 {e.completed} 行")
            with self._lock:
                job.mark_cancelled()
                self.update_job(job)
            return
        except DocMergeError as e:
            logger.warning(f"任务失败: job={job_id} {e.code}: {e.message}")
            with self._lock:
                job.mark_failed(e.message)
                self.update_job(job)
            return

        try:
            artifacts = result.all_artifacts()
            archive = self.config.get_job_dir(job_id) / ARCHIVE_NAME
            self.packager.package_to(archive, artifacts, job.template_name, job)
        except OSError as e:
            logger.exception(f"任务打包失败: job={job_id}")
            with self._lock:
                job.mark_failed(f"打包失败: {e}")
                self.update_job(job)
            return

        with self._lock:
            if job.status.is_terminal:
                logger.info(f"任务已处于终止状态，忽略生成结果: job={job_id} status={job.status.value}")
                return
            job.artifacts.archive_zip = archive
            job.artifacts.file_names = [a.file_name for a in artifacts]
            job.mark_succeeded()
            self.update_job(job)
        logger.info(f"任务完成: job={job_id} 文档数={len(artifacts)}")

    # ------------------------------------------------------------------
    # 持久化
    # ------------------------------------------------------------------

    def _job_file(self, job_id: str) -> Path:
        return self.config.get_job_dir(job_id) / JOB_FILE

    def _persist_job(self, job: Job) -> None:
        path = self._job_file(job.job_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(job.model_dump_json(indent=2), encoding="utf-8")

    def _load_job(self, job_id: str) -> Job | None:
        # 只接受 UUID，防止路径穿越
        try:
            uuid.UUID(job_id)
        except ValueError:
            return None

        path = self._job_file(job_id)
        if not path.is_file():
            return None
        try:
            return Job.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning(f"任务文件无法读取: {path} ({e})")
            return None
