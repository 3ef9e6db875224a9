"""文档生成路由

Endpoints:
    POST /api/docx                   单文档 → DOCX；generate_all → JSON(base64)
    POST /api/docx/archive           批量生成 → ZIP
    POST /api/templates/validate     模板校验
"""

from __future__ import annotations

import logging
from pathlib import PurePath
from urllib.parse import quote

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from ...interfaces import IDatasetProvider
from ...models import Artifact
from ...models.request import sanitize_name
from ...pipeline import Packager
from ...pipeline.packager import ZIP_MEDIA_TYPE
from ...worker import WorkerSession
from ..deps import get_datasets, get_packager, get_session, resolve_dataset
from ..schemas import (
    BatchResponse,
    DocxRequest,
    GeneratedDocument,
    TemplateValidationRequest,
    ValidationResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["generate"])


@router.post("/docx", response_model=None)
def generate_docx(
    body: DocxRequest,
    session: WorkerSession = Depends(get_session),
    datasets: IDatasetProvider = Depends(get_datasets),
) -> Response:
    """生成文档

    generate_all=false 时返回 DOCX 二进制；
    generate_all=true 时返回 {success, documents:[{rowIndex, fileName, buffer}], message}
    """
    dataset = resolve_dataset(body, datasets)

    if body.generate_all:
        request = body.to_generation_request(dataset, batch=True)
        result = session.generate_documents(request)
        artifacts = result.all_artifacts()
        logger.info(f"批量生成完成: {body.template.name!r} {len(artifacts)} 个文档")
        batch = BatchResponse(
            documents=[
                GeneratedDocument(**{k: v for k, v in a.to_wire().items() if k != "media_type"})
                for a in artifacts
            ],
            message=f"Сгенерировано {len(artifacts)} документов",
        )
        return JSONResponse(batch.model_dump(by_alias=True))

    request = body.to_generation_request(dataset, batch=False)
    artifact = session.generate_document(request).artifact
    return _file_response(artifact.content, artifact.file_name, artifact.media_type)


@router.post("/docx/archive")
def generate_archive(
    body: DocxRequest,
    session: WorkerSession = Depends(get_session),
    datasets: IDatasetProvider = Depends(get_datasets),
    packager: Packager = Depends(get_packager),
) -> Response:
    """批量生成并打包为 ZIP"""
    dataset = resolve_dataset(body, datasets)
    request = body.to_generation_request(dataset, batch=True)
    artifacts: list[Artifact] = session.generate_documents(request).all_artifacts()

    content = packager.package(artifacts, body.template.name)
    base = sanitize_name(body.template.name) or "documents"
    return _file_response(content, f"{base}.zip", ZIP_MEDIA_TYPE)


@router.post("/templates/validate", response_model=ValidationResponse)
def validate_template(
    body: TemplateValidationRequest,
    session: WorkerSession = Depends(get_session),
) -> ValidationResponse:
    """校验模板能否用于生成"""
    report = session.validate_template(body.template)
    return ValidationResponse(is_valid=report.is_valid, errors=report.errors)


def _file_response(content: bytes, file_name: str, media_type: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": content_disposition(file_name)},
    )


def content_disposition(file_name: str) -> str:
    """附件头（非ASCII文件名使用 RFC 5987 编码）"""
    if file_name.isascii() and '"' not in file_name:
        return f'attachment; filename="{file_name}"'
    suffix = PurePath(file_name).suffix
    fallback = "document" + (suffix if suffix.isascii() else "")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name)}"
