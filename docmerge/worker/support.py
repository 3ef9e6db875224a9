"""
运行环境检查 - 隔离执行（工作线程）是否可用
"""

from __future__ import annotations

import sys
import threading

from ..interfaces import WorkerUnavailable

_UNSUPPORTED_PLATFORMS = ("emscripten", "wasi")

UNAVAILABLE_HINT = "当前环境不支持后台工作线程，请在支持线程的 CPython 环境中运行"


def is_worker_supported() -> bool:
    if sys.platform in _UNSUPPORTED_PLATFORMS:
        return False
    try:
        probe = threading.Thread(target=lambda: None, daemon=True)
        probe.start()
        probe.join(timeout=1.0)
    except RuntimeError:
        return False
    return True


def check_worker_support() -> None:
    """不支持时抛出 WorkerUnavailable"""
    if not is_worker_supported():
        raise WorkerUnavailable(f"{UNAVAILABLE_HINT} (platform={sys.platform})")
