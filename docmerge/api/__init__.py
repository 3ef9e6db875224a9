"""
HTTP 接口层 (FastAPI)

- main: 应用创建与生命周期
- routes: 文档生成/模板/任务路由
- errors: 异常 → JSON 错误响应
"""
