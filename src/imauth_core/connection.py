# File: src/imauth_core/connection.py
"""
IM 认证连接管理器 (Connection Manager)

职责：
1. Socket 生命周期：打开 -> 发送 -> 等待 -> 释放 (仅一次)。
2. 超时计时：从发起连接开始，覆盖连接与等待响应两个阶段。
3. 事件竞争：connected / data / error / close / timeout / cancel
   统一进入一个队列，由单一循环消费，第一个产生结果的事件获胜。
"""

import asyncio
import functools
import ipaddress
import logging
import math
from collections.abc import Callable
from dataclasses import replace

from .classifier import describe
from .config import ClientConfig
from .dispatcher import ResultDispatcher
from .exceptions import ConfigError, ErrorCategory, ProtocolError, StateError
from .network import (
    CancelRequested,
    Connected,
    DataReceived,
    HandshakeEvent,
    HandshakeStreamProtocol,
    PeerClosed,
    TimedOut,
    TransportFailed,
)
from .outcome import ConnectionOutcome, TransportError
from .protocol import Credentials, parse_response, serialize_request, take_message, to_outcome
from .state import AttemptState, AttemptStatus

logger = logging.getLogger(__name__)


class ConnectionManager:
    """单次认证握手的连接管理器 (Async)。

    同一时刻只允许一个尝试在进行中；每次尝试都使用全新的
    Socket、事件队列、状态与分发器，互不共享。
    """

    def __init__(self, config: ClientConfig | None = None) -> None:
        """初始化连接管理器。

        Args:
            config: 客户端配置，缺省时使用默认端点与超时。
        """
        self.config = config or ClientConfig()
        self._state: AttemptState | None = None
        self._events: asyncio.Queue[HandshakeEvent] | None = None
        self._plaintext_warned = False

    @property
    def state(self) -> AttemptState | None:
        """获取最近一次尝试状态的副本。"""
        if self._state is None:
            return None
        return replace(self._state)

    @property
    def busy(self) -> bool:
        """是否有尝试正在进行中。"""
        return self._state is not None and self._state.is_active

    async def attempt(
        self,
        credentials: Credentials,
        host: str | None = None,
        port: int | None = None,
        timeout: float | None = None,
    ) -> ConnectionOutcome:
        """执行一次认证握手。

        网络与协议层面的失败不会抛出异常，而是作为 TransportError 返回。

        Args:
            credentials: 用户凭据。
            host: 服务器地址，缺省取配置。
            port: 服务器端口，缺省取配置。
            timeout: 超时秒数，缺省取配置。

        Returns:
            ConnectionOutcome: Success / Rejected / TransportError 之一。

        Raises:
            StateError: 上一次尝试尚未结束。
            ConfigError: 超时时间非法。
        """
        if self.busy:
            raise StateError("上一次登录尝试尚未结束")

        host = host or self.config.host
        port = port or self.config.port
        timeout = self.config.timeout if timeout is None else timeout
        if not math.isfinite(timeout) or timeout <= 0:
            raise ConfigError(f"超时时间必须为正数: {timeout}")

        loop = asyncio.get_running_loop()
        state = AttemptState()
        events: asyncio.Queue[HandshakeEvent] = asyncio.Queue()
        dispatcher = ResultDispatcher(on_outcome=functools.partial(self._on_resolved, state))
        self._state, self._events = state, events

        self._warn_plaintext(host)
        self._update_status(state, AttemptStatus.CONNECTING, f"正在连接 {host}:{port}")

        timer = loop.call_later(timeout, events.put_nowait, TimedOut(timeout))
        connect_task = loop.create_task(
            self._open_connection(lambda: HandshakeStreamProtocol(events), host, port),
            name="ImAuthConnectTask",
        )
        connect_task.add_done_callback(functools.partial(self._on_connect_done, events))

        try:
            while not dispatcher.resolved:
                event = await events.get()
                self._dispatch(state, dispatcher, credentials, event)
        except asyncio.CancelledError:
            dispatcher.resolve(TransportError(ErrorCategory.CANCELLED, "登录任务被取消"))
            raise
        finally:
            timer.cancel()
            if not connect_task.done():
                connect_task.cancel()
            if not dispatcher.resolved:
                dispatcher.resolve(TransportError(ErrorCategory.UNKNOWN, "登录尝试异常终止"))
            self._release(state)
            # 已排队的迟到事件交给闩锁丢弃
            while not events.empty():
                self._dispatch(state, dispatcher, credentials, events.get_nowait())

        return await dispatcher.wait()

    def cancel(self, reason: str = "用户取消登录") -> bool:
        """显式取消当前尝试。

        取消事件与 data/error/timeout 一同参与竞争。

        Returns:
            bool: 有尝试在进行中并已投递取消事件时返回 True。
        """
        if not self.busy or self._events is None:
            return False
        self._events.put_nowait(CancelRequested(reason))
        return True

    async def _open_connection(
        self, protocol_factory: Callable[[], asyncio.Protocol], host: str, port: int
    ) -> asyncio.BaseTransport:
        """[Internal] 建立 TCP 连接。多地址全部失败时抛出 ExceptionGroup。"""
        loop = asyncio.get_running_loop()
        transport, _ = await loop.create_connection(protocol_factory, host, port, all_errors=True)
        return transport

    def _on_connect_done(self, events: asyncio.Queue[HandshakeEvent], task: asyncio.Task) -> None:
        """[Internal] 连接任务结束回调：只负责把连接失败转为事件。"""
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug(f"连接失败: {exc!r}")
            events.put_nowait(TransportFailed(exc))

    def _dispatch(
        self,
        state: AttemptState,
        dispatcher: ResultDispatcher,
        credentials: Credentials,
        event: HandshakeEvent,
    ) -> None:
        """[Internal] 处理事件；处理过程中的意外异常作为 UNKNOWN 结果参与竞争。"""
        try:
            self._handle_event(state, dispatcher, credentials, event)
        except Exception as e:
            logger.error(f"处理事件 {type(event).__name__} 时发生意外错误: {e!r}", exc_info=True)
            dispatcher.resolve(describe(e))

    def _handle_event(
        self,
        state: AttemptState,
        dispatcher: ResultDispatcher,
        credentials: Credentials,
        event: HandshakeEvent,
    ) -> None:
        """[Internal] 处理单个事件。已决议后到达的事件只会被闩锁丢弃。"""
        if isinstance(event, Connected):
            if dispatcher.resolved:
                # 结果已定但连接刚建立，直接丢弃该连接
                event.transport.abort()
                return
            state.transport = event.transport
            try:
                payload = serialize_request(credentials, self.config.framing)
            except ProtocolError as e:
                logger.error(f"认证请求序列化失败: {e}")
                dispatcher.resolve(describe(e))
                return
            event.transport.write(payload)
            self._update_status(state, AttemptStatus.AWAITING_RESPONSE, "认证请求已发送")

        elif isinstance(event, DataReceived):
            try:
                message = take_message(
                    state.buffer, event.data, self.config.framing, self.config.max_response_bytes
                )
                if message is None:
                    return
                outcome = to_outcome(parse_response(message))
            except ProtocolError as e:
                logger.warning(f"服务器响应无效: {e}")
                outcome = describe(e)
            dispatcher.resolve(outcome)

        elif isinstance(event, TransportFailed):
            dispatcher.resolve(describe(event.exc))

        elif isinstance(event, PeerClosed):
            if state.buffer:
                dispatcher.resolve(describe(ProtocolError("响应不完整，连接已关闭")))
            else:
                dispatcher.resolve(TransportError(ErrorCategory.RESET, "服务器关闭了连接"))

        elif isinstance(event, TimedOut):
            dispatcher.resolve(
                TransportError(ErrorCategory.TIMEOUT, f"{ErrorCategory.TIMEOUT.description} ({event.timeout}s)")
            )

        elif isinstance(event, CancelRequested):
            dispatcher.resolve(TransportError(ErrorCategory.CANCELLED, event.reason))

    def _on_resolved(self, state: AttemptState, outcome: ConnectionOutcome) -> None:
        """[Internal] 进入 RESOLVED 时记录结果并立即释放 Socket。"""
        state.outcome = outcome
        self._update_status(state, AttemptStatus.RESOLVED, f"尝试结束: {outcome}")
        self._release(state)

    def _release(self, state: AttemptState) -> None:
        """[Internal] 释放 Socket：先尝试优雅关闭写端，再强制释放。只执行一次。"""
        if state.released:
            return
        state.released = True

        transport = state.transport
        if transport is None:
            logger.debug("未建立连接，无需释放")
            return

        try:
            if transport.can_write_eof():
                transport.write_eof()
        except (OSError, RuntimeError) as e:
            logger.debug(f"关闭写端失败: {e}")
        finally:
            transport.abort()
            state.transport = None
            logger.debug("Socket 已释放")

    def _update_status(self, state: AttemptState, status: AttemptStatus, msg: str) -> None:
        state.status = status
        logger.info(f"[{status.name}] {msg}")

    def _warn_plaintext(self, host: str) -> None:
        if self._plaintext_warned:
            return
        try:
            loopback = ipaddress.ip_address(host).is_loopback
        except ValueError:
            loopback = host == "localhost"
        if not loopback:
            logger.warning(f"凭据将以明文发送至 {host} (传输层未加密)")
            self._plaintext_warned = True
