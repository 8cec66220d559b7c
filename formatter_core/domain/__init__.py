"""领域层模型与协议。

包含：
- models: 边界数据模型（HistoryItem / ModelInfo / 响应信封）。
- exceptions: 错误码枚举、AppError 体系与 classify 转换。
- result: Ok / Err 结果类型。
- store_schema: 持久化存储的键与类型表，以及 SettingsStore 协议。
"""
