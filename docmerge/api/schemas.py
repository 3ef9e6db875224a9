"""
HTTP 请求/响应模型

请求字段同时接受 snake_case 与 camelCase（rowIndex、generateAll、fieldMappings、excelData、includeHeaders）
批量响应按 camelCase 输出
"""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..models import Dataset, GenerationRequest, OutputNaming, Template


class _ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class DocxRequest(_ApiModel):
    """POST /api/docx 请求体"""
    template: Template
    dataset: Dataset | None = Field(
        default=None, validation_alias=AliasChoices("dataset", "excelData", "excel_data")
    )
    dataset_ref: str | None = None
    field_mapping: dict[str, str] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("field_mapping", "fieldMapping", "fieldMappings"),
    )
    row_index: int = 0
    row_indices: list[int] | None = None
    generate_all: bool = False
    output_naming: OutputNaming | None = None
    include_headers: bool = False

    def to_generation_request(self, dataset: Dataset, batch: bool) -> GenerationRequest:
        if not batch:
            selection = self.row_index
        elif self.row_indices is not None:
            selection = self.row_indices
        else:
            selection = "all"
        return GenerationRequest(
            template=self.template,
            dataset=dataset,
            field_mapping=self.field_mapping,
            row_selection=selection,
            output_naming=self.output_naming or OutputNaming(),
            include_headers=self.include_headers,
        )


class TemplateValidationRequest(_ApiModel):
    template: Template


class GeneratedDocument(_ApiModel):
    """批量结果中的单个文档，按 camelCase 输出（rowIndex、fileName）"""
    row_index: int
    file_name: str
    buffer: str = Field(..., description="base64")


class BatchResponse(_ApiModel):
    success: bool = True
    documents: list[GeneratedDocument]
    message: str


class ValidationResponse(BaseModel):
    is_valid: bool
    errors: list[str]


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    details: str | None = None
    code: str | None = None


class JobResponse(BaseModel):
    job_id: str
    status: str
    template_name: str
    current: int
    total: int
    percent: int
    message: str
    file_names: list[str]
    errors: list[str]
