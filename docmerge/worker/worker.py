"""
文档工作线程 - 隔离边界内运行生成协调器

结构：
- 消息泵线程: 读取入站队列，分派 CANCEL / VALIDATE_TEMPLATE，生成请求排入任务队列
- 生成线程: 按到达顺序逐个执行生成（同一时刻至多一个生成）
- 入站/出站队列只传递 JSON 文本，不共享对象引用

每个生成请求有独立的取消事件；CANCEL 可指定 data.id，未指定时取消全部未完成生成。
被取消的生成以 SUCCESS {cancelled: true} 结束

测试要点：
- test_progress_carries_id: PROGRESS 带原请求ID
- test_cancel_queued_request: 排队中的请求被取消
- test_invalid_payload: 结构错误返回 REQUEST_INVALID
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any

from pydantic import ValidationError

from ..config import RuntimeConfig, get_config
from ..interfaces import DocMergeError, GenerationCancelled, RequestInvalid, WorkerError
from ..models import GenerationRequest, Template
from ..pipeline.coordinator import GenerationCoordinator
from . import protocol
from .protocol import Envelope, MessageType

logger = logging.getLogger(__name__)

_STOP = None


class DocumentWorker:
    """文档工作线程"""

    def __init__(
        self,
        coordinator: GenerationCoordinator | None = None,
        config: RuntimeConfig | None = None,
    ):
        self.config = config or get_config()
        self.coordinator = coordinator or GenerationCoordinator(config=self.config)

        self.inbox: queue.Queue[str | None] = queue.Queue()
        self.outbox: queue.Queue[str] = queue.Queue()

        self._jobs: queue.Queue[Envelope | None] = queue.Queue()
        self._cancel_events: dict[str, threading.Event] = {}
        self._lock = threading.Lock()
        self._threads: list[threading.Thread] = []

    @property
    def is_running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    def start(self) -> None:
        if self.is_running:
            return
        self._threads = [
            threading.Thread(target=self._pump, name="docmerge-pump", daemon=True),
            threading.Thread(target=self._generate_loop, name="docmerge-generate", daemon=True),
        ]
        for t in self._threads:
            t.start()
        logger.info("文档工作线程已启动")

    def stop(self) -> None:
        """停止线程（未开始的生成被取消，进行中的生成在行边界结束）"""
        self._cancel_all()
        self.inbox.put(_STOP)
        for t in self._threads:
            t.join(timeout=self.config.worker.join_timeout_sec)
            if t.is_alive():
                logger.warning(f"线程未在超时内结束: {t.name}")
        self._threads = []
        logger.info("文档工作线程已停止")

    def post(self, text: str) -> None:
        """投递已编码的消息"""
        self.inbox.put(text)

    # ------------------------------------------------------------------
    # 消息泵
    # ------------------------------------------------------------------

    def _pump(self) -> None:
        while True:
            text = self.inbox.get()
            if text is _STOP:
                self._jobs.put(_STOP)
                return

            try:
                envelope = protocol.decode(text)
            except protocol.ProtocolError as e:
                logger.warning(f"丢弃无法解析的消息: {e}")
                continue

            try:
                self._dispatch(envelope)
            except Exception as e:
                logger.exception(f"消息处理失败: type={envelope.type} id={envelope.id}")
                self._reply(protocol.error(envelope.id, str(e), WorkerError.code))

    def _dispatch(self, envelope: Envelope) -> None:
        msg_type = envelope.message_type

        if msg_type == MessageType.CANCEL:
            target = envelope.data.get("id") if isinstance(envelope.data, dict) else None
            cancelled = self._cancel(str(target)) if target is not None else self._cancel_all()
            self._reply(protocol.success(envelope.id, {"cancelled": cancelled}))
            return

        if msg_type == MessageType.VALIDATE_TEMPLATE:
            self._reply(self._validate_template(envelope))
            return

        if msg_type in protocol.GENERATION_TYPES:
            if envelope.id is None:
                logger.warning(f"生成请求缺少ID，已丢弃: type={envelope.type}")
                return
            with self._lock:
                self._cancel_events[envelope.id] = threading.Event()
            self._jobs.put(envelope)
            return

        self._reply(protocol.error(envelope.id, f"未知消息类型: {envelope.type}", RequestInvalid.code))

    def _validate_template(self, envelope: Envelope) -> Envelope:
        data = envelope.data if isinstance(envelope.data, dict) else {}
        try:
            template = Template.model_validate(data.get("template", data))
        except ValidationError as e:
            return protocol.success(envelope.id, {"is_valid": False, "errors": _validation_messages(e)})
        report = self.coordinator.validate(template)
        return protocol.success(envelope.id, report.model_dump())

    # ------------------------------------------------------------------
    # 生成
    # ------------------------------------------------------------------

    def _generate_loop(self) -> None:
        while True:
            envelope = self._jobs.get()
            if envelope is _STOP:
                return
            try:
                self._reply(self._generate(envelope))
            finally:
                with self._lock:
                    self._cancel_events.pop(envelope.id, None)

    def _generate(self, envelope: Envelope) -> Envelope:
        msg_id = envelope.id
        with self._lock:
            cancel_event = self._cancel_events.get(msg_id) or threading.Event()

        if cancel_event.is_set():
            logger.info(f"请求在开始前已取消: id={msg_id}")
            return protocol.success(msg_id, {"cancelled": True, "completed": 0})

        try:
            request = _parse_request(envelope.data)
            if envelope.message_type == MessageType.GENERATE_SINGLE_DOCUMENT:
                result = self.coordinator.generate_one(request)
                return protocol.success(msg_id, {"artifact": result.artifact.to_wire()})

            result = self.coordinator.generate_batch(
                request,
                on_progress=lambda event: self._reply(
                    protocol.progress(msg_id, event.current, event.total, event.message)
                ),
                cancel_event=cancel_event,
            )
            return protocol.success(msg_id, {"artifacts": [a.to_wire() for a in result.artifacts]})

        except GenerationCancelled as e:
            return protocol.success(msg_id, {"cancelled": True, "completed": e.completed})
        except DocMergeError as e:
            logger.warning(f"生成失败: id={msg_id} {e.code}: {e.message}")
            return protocol.error(msg_id, e.message, e.code)
        except Exception as e:
            logger.exception(f"生成过程出现未预期错误: id={msg_id}")
            return protocol.error(msg_id, f"生成文档时出错: {e}", WorkerError.code)

    # ------------------------------------------------------------------
    # 取消
    # ------------------------------------------------------------------

    def _cancel(self, request_id: str) -> list[str]:
        with self._lock:
            event = self._cancel_events.get(request_id)
        if event is None:
            return []
        event.set()
        return [request_id]

    def _cancel_all(self) -> list[str]:
        with self._lock:
            items = list(self._cancel_events.items())
        for _, event in items:
            event.set()
        return [request_id for request_id, _ in items]

    def _reply(self, envelope: Envelope) -> None:
        self.outbox.put(protocol.encode(envelope))


def _parse_request(data: Any) -> GenerationRequest:
    try:
        return GenerationRequest.model_validate(data)
    except ValidationError as e:
        raise RequestInvalid("请求格式错误: " + "; ".join(_validation_messages(e))) from e


def _validation_messages(error: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(p) for p in item['loc']) or '<root>'}: {item['msg']}"
        for item in error.errors()
    ]
