"""领域层模型与协议。

包含：
- models: Turn（UserMessage / AssistantMessage / ToolResult）、ChatRequest、GatewayResponse 等。
- conversation: ConversationStore 抽象。
- personality: 人格配置的加载与渲染。
- exceptions: 业务异常类型定义。
"""
