"""
docmerge 文档批量生成引擎 - 后端核心模块

模块结构：
- config/     运行期配置加载
- models/     数据模型定义（模板/数据集/请求/结果/任务）
- doc_gen/    字段解析、版面排序、模板校验、DOCX渲染
- pipeline/   生成协调器、任务管理、打包、外部存储协作
- worker/     隔离执行边界（消息协议/工作线程/请求追踪/会话）
- api/        FastAPI 接口层
"""

__version__ = "0.1.0"
