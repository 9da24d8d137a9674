# File: src/imauth_core/classifier.py
"""
IM 认证核心库 - 错误分类器

将底层传输异常映射为少量稳定的 ErrorCategory，
调用方无需关心平台相关的错误码。
"""

import asyncio
import errno

from .exceptions import ErrorCategory, ProtocolError
from .outcome import TransportError

_REFUSED_ERRNOS = {errno.ECONNREFUSED}
_RESET_ERRNOS = {errno.ECONNRESET, errno.ECONNABORTED, errno.EPIPE}
_TIMEOUT_ERRNOS = {errno.ETIMEDOUT}


def classify(exc: BaseException) -> ErrorCategory:
    """将传输异常归类。

    Args:
        exc: 连接/读写过程中捕获的异常。

    Returns:
        ErrorCategory: 对应分类，无法识别时为 UNKNOWN。
    """
    if isinstance(exc, ProtocolError):
        return ErrorCategory.PROTOCOL_ERROR

    if isinstance(exc, BaseExceptionGroup):
        # 多地址连接 (如 IPv4/IPv6 同时失败) 时只有全部同类才保留分类
        categories = {classify(e) for e in exc.exceptions}
        if len(categories) == 1:
            return categories.pop()
        return ErrorCategory.UNKNOWN

    if isinstance(exc, ConnectionRefusedError):
        return ErrorCategory.CONNECTION_REFUSED
    if isinstance(exc, (ConnectionResetError, ConnectionAbortedError, BrokenPipeError)):
        return ErrorCategory.RESET
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return ErrorCategory.TIMEOUT

    if isinstance(exc, OSError) and exc.errno is not None:
        if exc.errno in _REFUSED_ERRNOS:
            return ErrorCategory.CONNECTION_REFUSED
        if exc.errno in _RESET_ERRNOS:
            return ErrorCategory.RESET
        if exc.errno in _TIMEOUT_ERRNOS:
            return ErrorCategory.TIMEOUT

    return ErrorCategory.UNKNOWN


def describe(exc: BaseException) -> TransportError:
    """分类并附带展示用的描述。

    分类为 UNKNOWN 时附上原始异常的文本，便于排查；
    其他分类只使用标准描述，保证 UI 显示一致。
    """
    category = classify(exc)
    if category is ErrorCategory.UNKNOWN and str(exc):
        return TransportError(category, f"{category.description}: {exc}")
    return TransportError(category, category.description)
