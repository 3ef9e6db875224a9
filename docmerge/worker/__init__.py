"""
隔离执行模块 - 工作线程、消息协议、请求追踪

子模块：
- protocol: JSON 信封与消息类型
- worker: 工作线程（消息泵+生成线程）
- tracker: 关联ID与超时
- session: 调用方会话（上下文管理器）
- support: 运行环境检查
"""

from .protocol import Envelope, MessageType, ProtocolError, decode, encode
from .session import WorkerSession, to_result
from .support import check_worker_support, is_worker_supported
from .tracker import RequestTracker
from .worker import DocumentWorker

__all__ = [
    "Envelope",
    "MessageType",
    "ProtocolError",
    "encode",
    "decode",
    "WorkerSession",
    "to_result",
    "RequestTracker",
    "DocumentWorker",
    "check_worker_support",
    "is_worker_supported",
]
