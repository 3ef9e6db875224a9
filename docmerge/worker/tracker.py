"""
请求追踪器 - 关联ID分配、待决请求表、超时

职责：
1. 每次发送分配新的关联ID（单调递增计数器）
2. 维护 ID → (Future, 进度回调, 定时器) 的待决表
3. SUCCESS/ERROR 结算并移除对应条目；未知ID忽略
4. 超时到期移除条目并以 RequestTimeout 失败
5. teardown 丢弃所有待决条目（不结算，不取消工作线程侧任务）

测试要点：
- test_interleaved_responses: 交错响应各自结算
- test_timeout: 超时失败且条目被移除
- test_teardown: 丢弃条目后迟到响应被忽略
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from ..interfaces import RequestTimeout, error_from_code
from ..models import ProgressEvent
from .protocol import Envelope, MessageType, encode

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]


@dataclass
class _Pending:
    future: Future
    message_type: str
    on_progress: ProgressCallback | None
    timer: threading.Timer | None


class RequestTracker:
    """请求追踪器"""

    def __init__(self, transport: Callable[[str], None], timeout_sec: float | None = 300.0):
        """
        Args:
            transport: 发送已编码消息的函数（如 DocumentWorker.post）
            timeout_sec: 单个请求超时秒数，None 表示不超时
        """
        self._transport = transport
        self._timeout_sec = timeout_sec
        self._ids = itertools.count(1)
        self._pending: dict[str, _Pending] = {}
        self._lock = threading.Lock()

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def send(
        self,
        message_type: MessageType | str,
        data: Any = None,
        on_progress: ProgressCallback | None = None,
    ) -> Future:
        """发送请求，返回在终止消息到达时结算的 Future"""
        _, future = self.send_with_id(message_type, data, on_progress)
        return future

    def send_with_id(
        self,
        message_type: MessageType | str,
        data: Any = None,
        on_progress: ProgressCallback | None = None,
    ) -> tuple[str, Future]:
        """发送请求，同时返回关联ID（用于后续 CANCEL）"""
        type_value = message_type.value if isinstance(message_type, MessageType) else message_type
        request_id = str(next(self._ids))
        future: Future = Future()

        timer = None
        if self._timeout_sec is not None:
            timer = threading.Timer(self._timeout_sec, self._expire, args=(request_id,))
            timer.daemon = True

        with self._lock:
            self._pending[request_id] = _Pending(future, type_value, on_progress, timer)

        try:
            self._transport(encode(Envelope(type_value, data if data is not None else {}, request_id)))
        except Exception as e:
            self._pop(request_id)
            future.set_exception(e)
            return request_id, future

        if timer is not None:
            timer.start()
        logger.debug(f"请求已发送: id={request_id} type={type_value}")
        return request_id, future

    def handle_message(self, envelope: Envelope) -> None:
        """处理工作线程回传的消息"""
        msg_type = envelope.message_type
        request_id = envelope.id

        if msg_type == MessageType.PROGRESS:
            with self._lock:
                entry = self._pending.get(request_id) if request_id else None
            if entry is None:
                logger.debug(f"忽略未知ID的进度消息: id={request_id}")
                return
            if entry.on_progress is not None:
                self._notify_progress(entry.on_progress, envelope.data)
            return

        if msg_type not in (MessageType.SUCCESS, MessageType.ERROR):
            logger.debug(f"忽略非应答消息: type={envelope.type} id={request_id}")
            return

        entry = self._pop(request_id) if request_id else None
        if entry is None:
            logger.debug(f"忽略未知ID的应答: type={envelope.type} id={request_id}")
            return

        if entry.future.done():
            return
        if msg_type == MessageType.SUCCESS:
            entry.future.set_result(envelope.data)
        else:
            data = envelope.data if isinstance(envelope.data, dict) else {}
            entry.future.set_exception(
                error_from_code(data.get("code"), data.get("message") or "工作线程返回错误")
            )

    def teardown(self) -> int:
        """丢弃全部待决条目，返回丢弃数量"""
        with self._lock:
            entries = list(self._pending.values())
            self._pending.clear()
        for entry in entries:
            if entry.timer is not None:
                entry.timer.cancel()
        if entries:
            logger.warning(f"追踪器关闭，丢弃 {len(entries)} 个未完成请求")
        return len(entries)

    def _pop(self, request_id: str) -> _Pending | None:
        with self._lock:
            entry = self._pending.pop(request_id, None)
        if entry is not None and entry.timer is not None:
            entry.timer.cancel()
        return entry

    def _expire(self, request_id: str) -> None:
        entry = self._pop(request_id)
        if entry is None or entry.future.done():
            return
        logger.warning(f"请求超时: id={request_id} type={entry.message_type}")
        entry.future.set_exception(
            RequestTimeout(f"请求超时: {entry.message_type} 在 {self._timeout_sec:g} 秒内未完成")
        )

    @staticmethod
    def _notify_progress(callback: ProgressCallback, data: Any) -> None:
        try:
            event = ProgressEvent.model_validate(data)
        except ValidationError as e:
            logger.warning(f"进度消息格式错误: {e}")
            return
        try:
            callback(event)
        except Exception:
            logger.exception("进度回调执行失败")
