"""
请求追踪器单元测试

每个模块完成后必须运行：pytest tests/unit/test_tracker.py -v
"""

import pytest

from docmerge.interfaces import RenderFailure, RequestTimeout, WorkerError
from docmerge.worker import protocol
from docmerge.worker.protocol import MessageType
from docmerge.worker.tracker import RequestTracker


class FakeTransport:
    """记录发出的消息"""

    def __init__(self):
        self.sent: list[protocol.Envelope] = []

    def __call__(self, text: str) -> None:
        self.sent.append(protocol.decode(text))


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def tracker(transport: FakeTransport) -> RequestTracker:
    return RequestTracker(transport, timeout_sec=None)


class TestCorrelation:
    """关联ID"""

    def test_fresh_ids(self, tracker: RequestTracker, transport: FakeTransport):
        """测试每次发送分配新ID"""
        tracker.send(MessageType.VALIDATE_TEMPLATE, {})
        tracker.send(MessageType.VALIDATE_TEMPLATE, {})
        assert [e.id for e in transport.sent] == ["1", "2"]
        assert tracker.pending_count == 2

    def test_interleaved_responses(self, tracker: RequestTracker):
        """测试交错应答各自结算到对应请求"""
        id_a, fut_a = tracker.send_with_id(MessageType.GENERATE_MULTIPLE_DOCUMENTS, {})
        id_b, fut_b = tracker.send_with_id(MessageType.GENERATE_SINGLE_DOCUMENT, {})

        tracker.handle_message(protocol.success(id_b, {"who": "b"}))
        assert not fut_a.done()
        tracker.handle_message(protocol.error(id_a, "boom", "RENDER_FAILURE"))

        assert fut_b.result(timeout=1) == {"who": "b"}
        with pytest.raises(RenderFailure, match="boom"):
            fut_a.result(timeout=1)
        assert tracker.pending_count == 0

    def test_unknown_id_ignored(self, tracker: RequestTracker):
        """测试未知ID被忽略"""
        _, future = tracker.send_with_id(MessageType.VALIDATE_TEMPLATE, {})
        tracker.handle_message(protocol.success("999", {}))
        tracker.handle_message(protocol.success(None, {}))
        assert not future.done()

    def test_second_terminal_ignored(self, tracker: RequestTracker):
        """测试同一ID的重复终止消息被忽略"""
        request_id, future = tracker.send_with_id(MessageType.VALIDATE_TEMPLATE, {})
        tracker.handle_message(protocol.success(request_id, 1))
        tracker.handle_message(protocol.error(request_id, "late"))
        assert future.result(timeout=1) == 1

    def test_unknown_error_code(self, tracker: RequestTracker):
        """测试未知错误码还原为 WorkerError"""
        request_id, future = tracker.send_with_id(MessageType.VALIDATE_TEMPLATE, {})
        tracker.handle_message(protocol.error(request_id, "x", "SOMETHING"))
        with pytest.raises(WorkerError):
            future.result(timeout=1)


class TestProgress:
    """进度回调"""

    def test_progress_routed_by_id(self, tracker: RequestTracker):
        """测试进度只送达对应请求的回调"""
        seen_a, seen_b = [], []
        id_a, _ = tracker.send_with_id(MessageType.GENERATE_MULTIPLE_DOCUMENTS, {}, on_progress=seen_a.append)
        id_b, _ = tracker.send_with_id(MessageType.GENERATE_MULTIPLE_DOCUMENTS, {}, on_progress=seen_b.append)

        tracker.handle_message(protocol.progress(id_a, 1, 2, "a1"))
        tracker.handle_message(protocol.progress(id_b, 1, 1, "b1"))
        tracker.handle_message(protocol.progress(id_a, 2, 2, "a2"))

        assert [e.message for e in seen_a] == ["a1", "a2"]
        assert [e.message for e in seen_b] == ["b1"]

    def test_progress_callback_error_isolated(self, tracker: RequestTracker):
        """测试回调异常不影响结算"""
        def broken(event):
            raise RuntimeError("callback")

        request_id, future = tracker.send_with_id(MessageType.GENERATE_MULTIPLE_DOCUMENTS, {}, on_progress=broken)
        tracker.handle_message(protocol.progress(request_id, 1, 1, ""))
        tracker.handle_message(protocol.success(request_id, {"ok": True}))
        assert future.result(timeout=1) == {"ok": True}


class TestTimeoutAndTeardown:
    """超时与关闭"""

    def test_timeout(self, transport: FakeTransport):
        """测试超时失败且条目被移除"""
        tracker = RequestTracker(transport, timeout_sec=0.05)
        request_id, future = tracker.send_with_id(MessageType.GENERATE_MULTIPLE_DOCUMENTS, {})

        with pytest.raises(RequestTimeout):
            future.result(timeout=2)
        assert tracker.pending_count == 0

        tracker.handle_message(protocol.success(request_id, {}))
        assert isinstance(future.exception(), RequestTimeout)

    def test_teardown(self, tracker: RequestTracker):
        """测试丢弃条目后迟到应答被忽略"""
        request_id, future = tracker.send_with_id(MessageType.GENERATE_MULTIPLE_DOCUMENTS, {})
        assert tracker.teardown() == 1
        assert tracker.pending_count == 0

        tracker.handle_message(protocol.success(request_id, {}))
        assert not future.done()

    def test_transport_failure(self):
        """测试发送失败时立即失败"""
        def broken(text):
            raise OSError("closed")

        tracker = RequestTracker(broken, timeout_sec=None)
        future = tracker.send(MessageType.CANCEL, {})
        with pytest.raises(OSError):
            future.result(timeout=1)
        assert tracker.pending_count == 0
