# File: src/imauth_core/session.py
"""
IM 登录会话 (Login Session)

职责：
1. 作为宿主应用 (登录窗口) 与握手子系统之间的唯一接缝。
2. 提交处理器每个会话只注册一次；同一会话内不允许并发尝试。
3. 每次尝试只向监听器发出一个终态事件：
   PROCEED / LOGIN_FAILED(message) / CONNECTION_ERROR(message)。
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from .config import ClientConfig
from .connection import ConnectionManager
from .exceptions import StateError
from .outcome import ConnectionOutcome, Rejected, Success
from .protocol import Credentials

logger = logging.getLogger(__name__)


class LoginEvent(Enum):
    """发给宿主应用的终态事件。"""

    PROCEED = "proceed"
    LOGIN_FAILED = "login-failed"
    CONNECTION_ERROR = "connection-error"


# 定义回调函数类型别名：支持同步或异步函数
LoginListener = Callable[[LoginEvent, str], Any | Awaitable[Any]]
SubmitHandler = Callable[[Credentials], Awaitable[ConnectionOutcome]]


def outcome_to_event(outcome: ConnectionOutcome) -> tuple[LoginEvent, str]:
    """将尝试结果映射为宿主事件与消息。"""
    if isinstance(outcome, Success):
        return LoginEvent.PROCEED, ""
    if isinstance(outcome, Rejected):
        return LoginEvent.LOGIN_FAILED, outcome.message
    return LoginEvent.CONNECTION_ERROR, outcome.message


def present(event: LoginEvent, message: str) -> str:
    """生成用户可见的提示文本。

    连接问题与凭据错误使用不同前缀，保证两类失败在界面上可区分。
    """
    if event is LoginEvent.CONNECTION_ERROR:
        return f"服务器网络异常：{message}"
    if event is LoginEvent.LOGIN_FAILED:
        return f"登录失败：{message}"
    return ""


class LoginSession:
    """单个登录窗口对应的会话。"""

    def __init__(
        self,
        config: ClientConfig | None = None,
        manager: ConnectionManager | None = None,
    ) -> None:
        """初始化登录会话。

        Args:
            config: 客户端配置。
            manager: 可注入的连接管理器，缺省按 config 新建。
        """
        self.manager = manager or ConnectionManager(config)
        self._listeners: list[LoginListener] = []
        self._attached = False
        self._inflight: asyncio.Task | None = None

    def add_listener(self, callback: LoginListener) -> None:
        """注册终态事件监听器。"""
        if callback not in self._listeners:
            self._listeners.append(callback)

    def remove_listener(self, callback: LoginListener) -> None:
        """移除终态事件监听器。"""
        if callback in self._listeners:
            self._listeners.remove(callback)

    def attach(self, subscribe: Callable[[SubmitHandler], Any]) -> None:
        """向宿主应用注册凭据提交处理器 (每个会话仅一次)。

        Args:
            subscribe: 宿主提供的注册函数，接收 submit 处理器。

        Raises:
            StateError: 本会话已经注册过。
        """
        if self._attached:
            raise StateError("提交处理器已注册，不能重复注册")
        self._attached = True
        subscribe(self.submit)
        logger.debug("提交处理器已注册")

    @property
    def busy(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def submit(self, credentials: Credentials) -> ConnectionOutcome:
        """提交凭据并执行一次握手。

        Returns:
            ConnectionOutcome: 本次尝试的唯一结果。

        Raises:
            StateError: 本会话已有尝试在进行中。
        """
        if self.busy:
            raise StateError("登录请求处理中，请勿重复提交")

        logger.info(f"提交登录: {credentials!r}")
        self._inflight = asyncio.create_task(
            self.manager.attempt(credentials), name="ImAuthAttemptTask"
        )
        try:
            outcome = await self._inflight
        finally:
            self._inflight = None

        event, message = outcome_to_event(outcome)
        self._emit(event, message)
        return outcome

    def cancel(self, reason: str = "用户取消登录") -> bool:
        """取消进行中的尝试 (如用户关闭窗口)。"""
        return self.manager.cancel(reason)

    def _emit(self, event: LoginEvent, message: str) -> None:
        """异步触发所有监听器。"""
        logger.info(f"[{event.name}] {message}")

        for callback in self._listeners:
            try:
                if inspect.iscoroutinefunction(callback):
                    asyncio.create_task(callback(event, message))  # type: ignore
                else:
                    loop = asyncio.get_running_loop()
                    loop.call_soon(callback, event, message)
            except RuntimeError:
                pass
            except Exception as e:
                logger.error(f"回调执行异常: {e}")
