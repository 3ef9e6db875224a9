"""
运行期配置 - 读取 documents/runtime.yaml

职责：
- 加载版面容差/本地化格式/超时/上限等运行参数
- 提供环境变量覆盖机制（前缀 DOCMERGE_）
- 类型安全的配置访问
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LayoutConfig(BaseModel):
    """版面配置"""

    line_tolerance: float = 10.0  # 同一行判定的纵向容差（版面单位）
    run_gap: float = 20.0         # 同行元素间距超过该值时插入空格
    px_to_pt: float = 0.75        # 96 DPI 像素 → 磅


class LocaleConfig(BaseModel):
    """本地化格式配置（默认 ru-RU）"""

    empty_marker: str = "[пусто]"
    group_separator: str = "\u00a0"  # 不换行空格
    decimal_separator: str = ","
    max_fraction_digits: int = 3
    date_format: str = "%d.%m.%Y"
    time_format: str = "%H:%M:%S"
    datetime_format: str = "%d.%m.%Y, %H:%M:%S"
    true_text: str = "true"
    false_text: str = "false"
    nan_text: str = "не число"
    document_title: str = "Документ"
    author: str = "Пользователь"
    progress_message: str = "Генерация документа {current} из {total}"
    headers_label: str = "Заголовки полей"


class WorkerConfig(BaseModel):
    """隔离执行边界配置"""

    request_timeout_ms: int = 300_000
    poll_interval_sec: float = 0.1
    join_timeout_sec: float = 5.0


class LimitsConfig(BaseModel):
    """生成上限"""

    max_rows_per_batch: int = 10_000
    max_elements: int = 100


class LoggingConfig(BaseModel):
    """日志配置"""

    log_level: str = "INFO"


class RuntimeConfig(BaseSettings):
    """运行期配置

    优先级：构造参数（来自YAML） > 环境变量 DOCMERGE_<SECTION>__<KEY> > 默认值
    """

    storage_dir: Path = Path("storage")

    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    locale: LocaleConfig = Field(default_factory=LocaleConfig)
    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(env_prefix="DOCMERGE_", env_nested_delimiter="__")

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> RuntimeConfig:
        """从YAML加载（文件不存在时全部取默认值）"""
        path = Path(yaml_path)
        if not path.exists():
            return cls()

        with open(path, encoding="utf-8") as f:
            options = (yaml.safe_load(f) or {}).get("runtime_options") or {}

        kwargs: dict[str, Any] = {
            name: section(**_flatten(options.get(name)))
            for name, section in _SECTIONS.items()
            if options.get(name)
        }
        if options.get("storage_dir"):
            # 相对路径以配置文件所在目录为基准
            kwargs["storage_dir"] = (path.parent / options["storage_dir"]).resolve()
        return cls(**kwargs)

    @property
    def request_timeout_sec(self) -> float:
        return self.worker.request_timeout_ms / 1000.0

    @property
    def jobs_dir(self) -> Path:
        return self.storage_dir / "jobs"

    def get_job_dir(self, job_id: str) -> Path:
        return self.jobs_dir / job_id

    def get_templates_dir(self) -> Path:
        return self.storage_dir / "templates"

    def ensure_dirs(self) -> None:
        for directory in (self.jobs_dir, self.get_templates_dir()):
            directory.mkdir(parents=True, exist_ok=True)


_SECTIONS: dict[str, type[BaseModel]] = {
    "layout": LayoutConfig,
    "locale": LocaleConfig,
    "worker": WorkerConfig,
    "limits": LimitsConfig,
    "logging": LoggingConfig,
}


def _flatten(section: dict[str, Any] | None) -> dict[str, Any]:
    """{key: {default: x, desc: ...}} → {key: x}；无 default 的字典节点忽略"""
    flat: dict[str, Any] = {}
    for key, value in (section or {}).items():
        if not isinstance(value, dict):
            flat[key] = value
        elif "default" in value:
            flat[key] = value["default"]
    return flat


# 查找顺序：documents/ 优先，其次 config/
CONFIG_CANDIDATES = (Path("documents/runtime.yaml"), Path("config/runtime.yaml"))

_config: RuntimeConfig | None = None


def get_config() -> RuntimeConfig:
    """全局配置（首次访问时加载）"""
    global _config
    if _config is None:
        _config = reload_config()
    return _config


def reload_config(yaml_path: str | Path | None = None) -> RuntimeConfig:
    """重新加载；未指定路径时取第一个存在的候选文件"""
    global _config
    if yaml_path is None:
        yaml_path = next((p for p in CONFIG_CANDIDATES if p.exists()), CONFIG_CANDIDATES[0])
    _config = RuntimeConfig.from_yaml(yaml_path)
    return _config
