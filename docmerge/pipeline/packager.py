"""
打包器 - 多文档打包为ZIP并附带manifest

职责：
1. 将批量生成的产物写入 ZIP（文件名冲突时追加序号）
2. 生成 manifest.json（模板、行号、文件名、大小）
3. 可选落盘到任务目录

测试要点：
- test_package_zip: ZIP内容与文件名
- test_manifest_structure: manifest结构
- test_duplicate_names: 重名文件去重
"""

from __future__ import annotations

import io
import json
import zipfile
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..models import Artifact, Job

MANIFEST_NAME = "manifest.json"
ZIP_MEDIA_TYPE = "application/zip"


class Packager:
    """打包器实现"""

    def __init__(self, include_manifest: bool = True):
        self.include_manifest = include_manifest

    def package(self, artifacts: list[Artifact], template_name: str = "", job: Job | None = None) -> bytes:
        """打包为ZIP字节串"""
        buffer = io.BytesIO()
        names = unique_names([a.file_name for a in artifacts])

        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            for artifact, name in zip(artifacts, names):
                zf.writestr(name, artifact.content)

            if self.include_manifest:
                manifest = self.generate_manifest(artifacts, names, template_name, job)
                zf.writestr(MANIFEST_NAME, json.dumps(manifest, ensure_ascii=False, indent=2))

        return buffer.getvalue()

    def package_to(self, path: Path, artifacts: list[Artifact], template_name: str = "", job: Job | None = None) -> Path:
        """打包并写入文件"""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.package(artifacts, template_name, job))
        return path

    def generate_manifest(
        self,
        artifacts: list[Artifact],
        names: list[str],
        template_name: str = "",
        job: Job | None = None,
    ) -> dict:
        """生成manifest内容"""
        manifest = {
            "schema_version": "1.0",
            "template": template_name,
            "generated_at": datetime.now().isoformat(),
            "count": len(artifacts),
            "documents": [
                {
                    "row_index": a.row_index,
                    "file_name": name,
                    "size": a.size,
                    "media_type": a.media_type,
                }
                for a, name in zip(artifacts, names)
            ],
        }
        if job is not None:
            manifest["job_id"] = job.job_id
            manifest["timestamps"] = {
                "created_at": job.created_at.isoformat() if job.created_at else None,
                "started_at": job.started_at.isoformat() if job.started_at else None,
            }
        return manifest


def unique_names(names: list[str]) -> list[str]:
    """重名时在扩展名前追加 (2)、(3)…"""
    seen: dict[str, int] = {}
    result = []
    for name in names:
        count = seen.get(name, 0) + 1
        seen[name] = count
        if count == 1:
            result.append(name)
            continue
        stem, dot, ext = name.rpartition(".")
        if not dot:
            stem, ext = name, ""
        candidate = f"{stem} ({count}){dot}{ext}"
        while candidate in seen:
            count += 1
            candidate = f"{stem} ({count}){dot}{ext}"
        seen[name] = count
        seen[candidate] = 1
        result.append(candidate)
    return result
