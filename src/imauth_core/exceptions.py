# File: src/imauth_core/exceptions.py
"""
IM 认证核心库 - 异常体系 (Exceptions)

定义库内统一使用的异常类与传输错误分类，
以便上层应用（如登录窗口/CLI）能进行精细的错误处理。
"""

from enum import Enum


class ImAuthError(Exception):
    """imauth-core 所有内部异常的基类。

    上层应用可以通过捕获此异常来处理所有由本库抛出的已知错误。
    """

    pass


class ConfigError(ImAuthError):
    """配置加载或校验失败。

    触发场景:
    1. 端口不在 1-65535 范围内。
    2. 超时时间非正数。
    3. 找不到配置文件或 Profile。
    """

    pass


class ProtocolError(ImAuthError):
    """协议交互错误 (逻辑级别)。

    触发场景:
    1. 服务器响应不是合法的 UTF-8 JSON 对象。
    2. 响应缺少必需的 success 字段，或类型不是布尔值。
    3. 请求中的凭据无法编码。
    """

    pass


class StateError(ImAuthError):
    """状态机错误 (FSM Violation)。

    触发场景:
    1. 上一次登录尝试尚未结束时再次发起尝试。
    2. 同一个会话重复注册提交处理器。
    """

    pass


class ErrorCategory(Enum):
    """传输失败的稳定分类。

    其他组件只依据分类本身做判断，description 仅用于展示。
    """

    CONNECTION_REFUSED = "connection_refused"
    TIMEOUT = "timeout"
    RESET = "reset"
    PROTOCOL_ERROR = "protocol_error"
    APPLICATION_REJECTION = "application_rejection"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"

    @property
    def description(self) -> str:
        """获取分类对应的人类可读描述。

        Returns:
            str: 对应的中文错误提示。
        """
        _DESC_MAP = {
            "connection_refused": "服务器拒绝连接",
            "timeout": "连接超时",
            "reset": "连接被服务器重置",
            "protocol_error": "invalid server response",
            "application_rejection": "认证被拒绝",
            "cancelled": "登录已取消",
        }
        return _DESC_MAP.get(self.value, "未知网络错误")

    @property
    def is_transport(self) -> bool:
        """是否属于“连接问题”一类 (与凭据错误区分展示)。"""
        return self is not ErrorCategory.APPLICATION_REJECTION
