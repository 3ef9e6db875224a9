"""模板存储路由

Endpoints:
    GET    /api/templates                列出模板
    POST   /api/templates                保存模板
    GET    /api/templates/{template_id}  获取模板
    DELETE /api/templates/{template_id}  删除模板
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ...interfaces import ITemplateStore
from ...models import Template
from ..deps import get_templates

router = APIRouter(prefix="/api/templates", tags=["templates"])


@router.get("")
def list_templates(store: ITemplateStore = Depends(get_templates)) -> list[dict]:
    return [t.model_dump(mode="json", by_alias=True) for t in store.list_templates()]


@router.post("", status_code=201)
def save_template(template: Template, store: ITemplateStore = Depends(get_templates)) -> dict:
    try:
        template_id = store.save_template(template)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return {"id": template_id}


@router.get("/{template_id}")
def get_template(template_id: str, store: ITemplateStore = Depends(get_templates)) -> dict:
    template = store.get_template(template_id)
    if template is None:
        raise HTTPException(status_code=404, detail=f"模板不存在: {template_id}")
    return template.model_dump(mode="json", by_alias=True)


@router.delete("/{template_id}")
def delete_template(template_id: str, store: ITemplateStore = Depends(get_templates)) -> dict:
    if not store.delete_template(template_id):
        raise HTTPException(status_code=404, detail=f"模板不存在: {template_id}")
    return {"deleted": template_id}
