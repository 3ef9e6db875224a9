"""
工作会话 - 调用方侧的生成入口

职责：
1. 显式创建/关闭隔离边界（工作线程+请求追踪器+监听线程）
2. 将生成请求序列化后发送，等待对应ID的终止消息
3. 将 SUCCESS/ERROR 还原为结果或异常；{cancelled: true} 还原为 GenerationCancelled

使用方式：
    with WorkerSession() as session:
        result = session.generate_documents(request, on_progress=print)

测试要点：
- test_session_generate_document: 单文档端到端
- test_session_progress_order: 进度顺序到达且先于结果
- test_session_cancel: 取消后得到 GenerationCancelled
- test_close_releases_blocked_caller: 关闭会话时等待中的调用以 WorkerUnavailable 结束
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable
from concurrent.futures import Future, InvalidStateError
from typing import Any

from pydantic import ValidationError

from ..config import RuntimeConfig, get_config
from ..doc_gen import ValidationReport
from ..interfaces import GenerationCancelled, WorkerError, WorkerUnavailable
from ..models import Artifact, GenerationRequest, GenerationResult, Template
from ..pipeline.coordinator import GenerationCoordinator
from . import protocol
from .protocol import MessageType
from .support import check_worker_support
from .tracker import ProgressCallback, RequestTracker
from .worker import DocumentWorker

logger = logging.getLogger(__name__)


class WorkerSession:
    """工作会话"""

    def __init__(
        self,
        config: RuntimeConfig | None = None,
        coordinator: GenerationCoordinator | None = None,
    ):
        self.config = config or get_config()
        self._coordinator = coordinator
        self._worker: DocumentWorker | None = None
        self._tracker: RequestTracker | None = None
        self._listener: threading.Thread | None = None
        self._stopping = threading.Event()
        self._outstanding: set[Future] = set()
        self._outstanding_lock = threading.Lock()

    def __enter__(self) -> WorkerSession:
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_started(self) -> bool:
        return self._worker is not None

    def start(self) -> None:
        """建立隔离边界"""
        if self._worker is not None:
            return
        check_worker_support()

        self._stopping.clear()
        worker = DocumentWorker(coordinator=self._coordinator, config=self.config)
        worker.start()
        self._worker = worker
        self._tracker = RequestTracker(worker.post, timeout_sec=self.config.request_timeout_sec)
        self._listener = threading.Thread(target=self._listen, name="docmerge-listener", daemon=True)
        self._listener.start()
        logger.info("工作会话已启动")

    def close(self) -> None:
        """关闭会话：丢弃待决请求并停止工作线程"""
        if self._worker is None:
            return
        self._tracker.teardown()
        self._abandon_outstanding()
        self._stopping.set()
        self._worker.stop()
        if self._listener is not None:
            self._listener.join(timeout=self.config.worker.join_timeout_sec)
        self._worker = None
        self._tracker = None
        self._listener = None
        logger.info("工作会话已关闭")

    # ------------------------------------------------------------------
    # 请求
    # ------------------------------------------------------------------

    def generate_document(self, request: GenerationRequest) -> GenerationResult:
        """生成单个文档（阻塞直到完成）"""
        _, future = self.submit(MessageType.GENERATE_SINGLE_DOCUMENT, request)
        return future.result()

    def generate_documents(
        self,
        request: GenerationRequest,
        on_progress: ProgressCallback | None = None,
    ) -> GenerationResult:
        """批量生成（阻塞直到完成，进度通过回调按序送达）"""
        _, future = self.submit(MessageType.GENERATE_MULTIPLE_DOCUMENTS, request, on_progress)
        return future.result()

    def submit(
        self,
        message_type: MessageType,
        request: GenerationRequest,
        on_progress: ProgressCallback | None = None,
    ) -> tuple[str, Future]:
        """异步提交生成请求，返回 (请求ID, Future[GenerationResult])"""
        tracker = self._require_tracker()
        payload = request.model_dump(by_alias=True)
        request_id, raw = tracker.send_with_id(message_type, payload, on_progress)
        return request_id, self._wrap(raw, to_result)

    def validate_template(self, template: Template | dict[str, Any]) -> ValidationReport:
        """在工作线程内校验模板"""
        tracker = self._require_tracker()
        payload = template.model_dump(by_alias=True) if isinstance(template, Template) else template
        raw = tracker.send(MessageType.VALIDATE_TEMPLATE, {"template": payload})
        return self._wrap(raw, ValidationReport.model_validate).result()

    def cancel(self, request_id: str | None = None) -> list[str]:
        """取消指定请求（未指定时取消全部未完成生成），返回被取消的ID"""
        tracker = self._require_tracker()
        data = {"id": request_id} if request_id is not None else {}
        raw = tracker.send(MessageType.CANCEL, data)
        return self._wrap(raw, lambda reply: list(reply.get("cancelled") or [])).result()

    # ------------------------------------------------------------------
    # 内部
    # ------------------------------------------------------------------

    def _wrap(self, raw: Future, convert: Callable[[Any], Any]) -> Future:
        """包装原始应答 Future；会话关闭时未结算的包装 Future 以 WorkerUnavailable 失败"""
        future: Future = Future()
        with self._outstanding_lock:
            self._outstanding.add(future)
        future.add_done_callback(self._forget)
        raw.add_done_callback(lambda f: _settle(future, f, convert))
        return future

    def _forget(self, future: Future) -> None:
        with self._outstanding_lock:
            self._outstanding.discard(future)

    def _abandon_outstanding(self) -> None:
        with self._outstanding_lock:
            futures = list(self._outstanding)
            self._outstanding.clear()
        for future in futures:
            try:
                future.set_exception(WorkerUnavailable("工作会话已关闭"))
            except InvalidStateError:
                continue
        if futures:
            logger.warning(f"会话关闭，{len(futures)} 个等待中的调用以 WorkerUnavailable 结束")

    def _require_tracker(self) -> RequestTracker:
        if self._tracker is None:
            raise WorkerUnavailable("工作会话未启动")
        return self._tracker

    def _listen(self) -> None:
        worker, tracker = self._worker, self._tracker
        poll = self.config.worker.poll_interval_sec
        while not self._stopping.is_set():
            try:
                text = worker.outbox.get(timeout=poll)
            except queue.Empty:
                continue
            try:
                tracker.handle_message(protocol.decode(text))
            except protocol.ProtocolError as e:
                logger.warning(f"丢弃无法解析的应答: {e}")


def _settle(target: Future, source: Future, convert: Callable[[Any], Any]) -> None:
    """将原始应答 Future 转换为调用方 Future"""
    if target.done():
        return
    error = source.exception()
    try:
        if error is not None:
            target.set_exception(error)
            return
        try:
            value = convert(source.result())
        except (GenerationCancelled, WorkerError) as e:
            target.set_exception(e)
            return
        except (ValidationError, AttributeError, TypeError) as e:
            target.set_exception(WorkerError(f"工作线程应答格式错误: {e}"))
            return
        target.set_result(value)
    except InvalidStateError:
        # 会话关闭时已被结算
        pass


def to_result(data: Any) -> GenerationResult:
    """SUCCESS 应答 → GenerationResult"""
    if not isinstance(data, dict):
        raise WorkerError("工作线程应答格式错误")
    if data.get("cancelled") is True:
        raise GenerationCancelled(completed=int(data.get("completed") or 0))
    try:
        if "artifacts" in data:
            return GenerationResult(artifacts=[Artifact.from_wire(a) for a in data["artifacts"]])
        if "artifact" in data:
            return GenerationResult(artifact=Artifact.from_wire(data["artifact"]))
    except (KeyError, ValueError, TypeError) as e:
        raise WorkerError(f"工作线程应答格式错误: {e}") from e
    raise WorkerError("工作线程应答缺少文档内容")
