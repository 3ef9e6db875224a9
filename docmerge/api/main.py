"""docmerge API - 表格数据批量填充文档模板

启动：
    python -m docmerge.api.main
    uvicorn docmerge.api.main:app
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .. import __version__
from ..config import RuntimeConfig, get_config
from ..pipeline import FileTemplateStore, JobManager, Packager, XlsxDatasetProvider
from ..worker import WorkerSession
from .errors import register_error_handlers
from .routes import generate, jobs, templates

logger = logging.getLogger(__name__)


def configure_logging(config: RuntimeConfig) -> None:
    logging.basicConfig(
        level=getattr(logging, config.logging.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(config: RuntimeConfig | None = None, session: WorkerSession | None = None) -> FastAPI:
    """创建应用

    Args:
        config: 运行期配置（默认全局配置）
        session: 工作会话（默认在启动时新建，由应用负责关闭）
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = config or get_config()
        configure_logging(cfg)
        cfg.ensure_dirs()

        owned = session is None
        worker_session = session or WorkerSession(cfg)
        worker_session.start()

        app.state.config = cfg
        app.state.session = worker_session
        app.state.packager = Packager()
        app.state.jobs = JobManager(worker_session, cfg, app.state.packager)
        app.state.templates = FileTemplateStore(cfg.get_templates_dir())
        app.state.datasets = XlsxDatasetProvider(cfg.storage_dir / "datasets")
        logger.info(f"docmerge API 已就绪: storage={cfg.storage_dir}")
        yield
        if owned:
            worker_session.close()
        logger.info("docmerge API 已关闭")

    app = FastAPI(title="docmerge API", version=__version__, lifespan=lifespan)
    register_error_handlers(app)
    app.include_router(generate.router)
    app.include_router(jobs.router)
    app.include_router(templates.router)

    @app.get("/health")
    async def health():
        """健康检查"""
        worker_session = getattr(app.state, "session", None)
        return {
            "status": "healthy",
            "version": __version__,
            "worker": bool(worker_session and worker_session.is_started),
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000)
