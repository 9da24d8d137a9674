# File: src/imauth_core/outcome.py
"""
IM 认证核心库 - 结果模型

每次登录尝试有且仅有一个 ConnectionOutcome：
Success / Rejected / TransportError 三者之一。
"""

from dataclasses import dataclass

from .exceptions import ErrorCategory


@dataclass(frozen=True)
class Success:
    """服务器接受了凭据。"""

    @property
    def message(self) -> str:
        return ""


@dataclass(frozen=True)
class Rejected:
    """服务器返回了格式正确但 success=false 的响应。

    Attributes:
        message: 服务器给出的拒绝原因，缺省为空字符串。
    """

    message: str = ""

    @property
    def category(self) -> ErrorCategory:
        return ErrorCategory.APPLICATION_REJECTION


@dataclass(frozen=True)
class TransportError:
    """连接、传输或协议层面的失败。

    Attributes:
        category: 稳定的错误分类，供其他组件判断。
        detail: 人类可读的描述，仅用于展示。
    """

    category: ErrorCategory
    detail: str = ""

    @property
    def message(self) -> str:
        return self.detail or self.category.description


ConnectionOutcome = Success | Rejected | TransportError
