"""
Stay on One 异常定义模块。

异常层次结构：
- AccountabilityError: 基类，所有已知错误
- ValidationError: 输入校验失败 (空目标 / 空笔记)，同步抛给调用方
- CheckinRejectedError: 当日打卡状态不允许再次提交
- ConfigError: 配置文件错误
- CollaboratorError: Coach 调用失败，由 call_coach 吸收，不会到达 UI
- PersistenceError: 存储读写失败，在存储边界吸收并记录日志
"""
from typing import Optional


class AccountabilityError(Exception):
    """基础异常类。

    捕获此类可以处理所有预期的错误情况。
    """

    def __init__(self, message: str, hint: Optional[str] = None):
        """
        Args:
            message: 错误描述
            hint: 对用户的操作建议
        """
        super().__init__(message)
        self.message = message
        self.hint = hint

    def get_user_message(self) -> str:
        """返回用户友好的错误消息。"""
        if self.hint:
            return f"{self.message}\nHint: {self.hint}"
        return self.message


class ValidationError(AccountabilityError):
    """输入校验失败，在调用任何协作方之前抛出。"""

    def __init__(self, message: str, field: Optional[str] = None):
        hint = f"Check the '{field}' value" if field else None
        super().__init__(message, hint)
        self.field = field


class GoalNotFoundError(ValidationError):
    """目标不存在 (该分类下没有已设置的目标)。"""

    def __init__(self, category_id: int):
        super().__init__(f"No goal set for category {category_id}", field="category_id")
        self.category_id = category_id


class CheckinRejectedError(AccountabilityError):
    """打卡状态机拒绝状态迁移。

    已完成 (SCORED) 的目标应转去历史或对话页面；
    进行中 (SUBMITTED) 的目标不允许并发提交。
    """

    def __init__(self, category_id: int, state: str):
        if state == "scored":
            message = f"Goal {category_id} is already checked in for today"
            hint = "Review the goal history or chat with the coach instead"
        else:
            message = f"A check-in for goal {category_id} is already in flight"
            hint = "Wait for the current check-in to finish"
        super().__init__(message, hint)
        self.category_id = category_id
        self.state = state


class ConfigError(AccountabilityError):
    """配置文件错误。"""

    def __init__(self, message: str, config_path: Optional[str] = None):
        hint = f"Check config file: {config_path}" if config_path else "Check the config file format"
        super().__init__(message, hint)
        self.config_path = config_path


class PersistenceError(AccountabilityError):
    """存储读写失败。永远不会回滚内存状态。"""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message, hint=None)
        self.key = key


class CollaboratorError(AccountabilityError):
    """Coach 调用相关错误的基类，包含调用上下文信息。"""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        model_name: Optional[str] = None,
        endpoint: Optional[str] = None
    ):
        self.provider = provider or "unknown"
        self.model_name = model_name or "unknown"
        self.endpoint = endpoint
        # 不含上下文前缀的原始描述
        self.detail = message

        context = f"[{self.provider}/{self.model_name}]"
        super().__init__(f"{context} {message}")

    def get_user_message(self) -> str:
        base = f"Coach call failed ({self.provider}/{self.model_name}): {self.detail}"
        if self.hint:
            return f"{base}\nHint: {self.hint}"
        return base


class CoachConnectionError(CollaboratorError):
    """无法连接到 Coach 服务。"""

    def __init__(
        self,
        provider: Optional[str] = None,
        model_name: Optional[str] = None,
        endpoint: Optional[str] = None
    ):
        super().__init__("could not reach the coach service", provider, model_name, endpoint)

        if provider == "ollama":
            self.hint = "Make sure Ollama is running (ollama serve)"
        else:
            self.hint = "Check the network connection or the endpoint config"


class CoachAuthError(CollaboratorError):
    """Coach 鉴权失败。"""

    def __init__(
        self,
        provider: Optional[str] = None,
        model_name: Optional[str] = None,
        endpoint: Optional[str] = None
    ):
        super().__init__("authentication failed", provider, model_name, endpoint)
        self.hint = "Check the configured API key"


class CoachTimeoutError(CollaboratorError):
    """Coach 调用超时。"""

    def __init__(
        self,
        provider: Optional[str] = None,
        model_name: Optional[str] = None,
        endpoint: Optional[str] = None,
        timeout_seconds: Optional[float] = None
    ):
        message = "request timed out"
        if timeout_seconds:
            message = f"request timed out ({timeout_seconds}s)"
        super().__init__(message, provider, model_name, endpoint)
        self.timeout_seconds = timeout_seconds


class CoachRateLimitError(CollaboratorError):
    """Coach 请求频率限制。不做重试。"""

    def __init__(
        self,
        provider: Optional[str] = None,
        model_name: Optional[str] = None,
        endpoint: Optional[str] = None,
        retry_after: Optional[int] = None
    ):
        super().__init__("rate limited", provider, model_name, endpoint)
        self.retry_after = retry_after
