"""
工作线程消息协议 - 跨隔离边界的 JSON 信封

调用方 → 工作线程: {type, data, id}
    type ∈ GENERATE_SINGLE_DOCUMENT / GENERATE_MULTIPLE_DOCUMENTS / VALIDATE_TEMPLATE / CANCEL
工作线程 → 调用方:
    PROGRESS {data: {current, total, message}, id}
    SUCCESS  {data, id}
    ERROR    {data: {message, code}, id}

字段名与 type 枚举值即线协议，保持稳定。
消息以 JSON 文本传递（值拷贝，不共享引用）；
日期单元格编码为 {"$date": ISO} / {"$datetime": ISO}，Decimal 编码为 {"$decimal": str}
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any


class MessageType(str, Enum):
    """消息类型"""
    # 调用方 → 工作线程
    GENERATE_SINGLE_DOCUMENT = "GENERATE_SINGLE_DOCUMENT"
    GENERATE_MULTIPLE_DOCUMENTS = "GENERATE_MULTIPLE_DOCUMENTS"
    VALIDATE_TEMPLATE = "VALIDATE_TEMPLATE"
    CANCEL = "CANCEL"
    # 工作线程 → 调用方
    PROGRESS = "PROGRESS"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


REQUEST_TYPES = frozenset({
    MessageType.GENERATE_SINGLE_DOCUMENT,
    MessageType.GENERATE_MULTIPLE_DOCUMENTS,
    MessageType.VALIDATE_TEMPLATE,
    MessageType.CANCEL,
})

GENERATION_TYPES = frozenset({
    MessageType.GENERATE_SINGLE_DOCUMENT,
    MessageType.GENERATE_MULTIPLE_DOCUMENTS,
})

TERMINAL_TYPES = frozenset({MessageType.SUCCESS, MessageType.ERROR})


class ProtocolError(ValueError):
    """信封格式错误"""


@dataclass
class Envelope:
    """消息信封"""
    type: str
    data: Any = field(default_factory=dict)
    id: str | None = None

    @property
    def message_type(self) -> MessageType | None:
        try:
            return MessageType(self.type)
        except ValueError:
            return None

    @property
    def is_terminal(self) -> bool:
        return self.message_type in TERMINAL_TYPES

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.type, "data": self.data}
        if self.id is not None:
            payload["id"] = self.id
        return payload


def encode(envelope: Envelope) -> str:
    """信封 → JSON 文本"""
    return json.dumps(envelope.to_dict(), ensure_ascii=False, default=_encode_special)


def decode(text: str) -> Envelope:
    """JSON 文本 → 信封"""
    try:
        payload = json.loads(text, object_hook=_decode_special)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"消息不是合法JSON: {e}") from e

    if not isinstance(payload, dict) or not isinstance(payload.get("type"), str):
        raise ProtocolError("消息缺少 type 字段")

    msg_id = payload.get("id")
    return Envelope(
        type=payload["type"],
        data=payload.get("data") if payload.get("data") is not None else {},
        id=str(msg_id) if msg_id is not None else None,
    )


def progress(msg_id: str | None, current: int, total: int, message: str) -> Envelope:
    return Envelope(
        MessageType.PROGRESS.value,
        {"current": current, "total": total, "message": message},
        msg_id,
    )


def success(msg_id: str | None, data: Any) -> Envelope:
    return Envelope(MessageType.SUCCESS.value, data, msg_id)


def error(msg_id: str | None, message: str, code: str = "WORKER_ERROR") -> Envelope:
    return Envelope(MessageType.ERROR.value, {"message": message, "code": code}, msg_id)


def _encode_special(value: Any) -> Any:
    # datetime 是 date 的子类，先判断
    if isinstance(value, datetime):
        return {"$datetime": value.isoformat()}
    if isinstance(value, date):
        return {"$date": value.isoformat()}
    if isinstance(value, Decimal):
        return {"$decimal": str(value)}
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f"无法序列化的类型: {type(value).__name__}")


def _decode_special(obj: dict[str, Any]) -> Any:
    if len(obj) == 1:
        if "$datetime" in obj:
            return datetime.fromisoformat(obj["$datetime"])
        if "$date" in obj:
            return date.fromisoformat(obj["$date"])
        if "$decimal" in obj:
            return Decimal(obj["$decimal"])
    return obj
