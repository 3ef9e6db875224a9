"""
任务模型 - 服务端批量生成任务的状态与生命周期

状态流转：queued → running → succeeded | failed | cancelled
终止状态不可再迁移；进度只前进不回退。
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    """任务状态"""
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset({JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.CANCELLED})


class JobArtifacts(BaseModel):
    """生成结果：ZIP 路径与其中的文档名"""
    archive_zip: Path | None = None
    file_names: list[str] = Field(default_factory=list)

    @property
    def document_count(self) -> int:
        return len(self.file_names)


class JobProgress(BaseModel):
    """已完成行数 / 总行数"""
    current: int = 0
    total: int = 0
    percent: int = 0
    message: str = ""

    def advance(self, current: int, total: int) -> None:
        self.total = total
        self.current = min(max(self.current, current), total) if total else max(self.current, current)
        self.percent = self.current * 100 // total if total else 0


class Job(BaseModel):
    """批量生成任务"""
    job_id: str = Field(..., description="UUID")
    template_id: str = ""
    template_name: str = ""

    status: JobStatus = JobStatus.QUEUED
    progress: JobProgress = Field(default_factory=JobProgress)
    artifacts: JobArtifacts = Field(default_factory=JobArtifacts)
    errors: list[str] = Field(default_factory=list, description="失败原因")

    created_at: datetime = Field(default_factory=datetime.now)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def duration_sec(self) -> float | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def mark_running(self) -> None:
        self.status = JobStatus.RUNNING
        self.started_at = datetime.now()

    def update_progress(self, current: int, total: int, message: str = "") -> None:
        """记录进度（current 不回退）"""
        self.progress.advance(current, total)
        if message:
            self.progress.message = message

    def mark_succeeded(self) -> None:
        self._finish(JobStatus.SUCCEEDED)
        self.progress.percent = 100

    def mark_failed(self, error: str) -> None:
        self._finish(JobStatus.FAILED)
        self.errors.append(error)

    def mark_cancelled(self) -> None:
        self._finish(JobStatus.CANCELLED)

    def _finish(self, status: JobStatus) -> None:
        self.status = status
        self.finished_at = datetime.now()
        if self.started_at is None:
            self.started_at = self.finished_at
