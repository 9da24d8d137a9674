# src/imauth_core/network.py
"""
IM 认证核心库 - 网络模块 (Network) [Asyncio Edition]

将 asyncio 回调风格的 TCP 事件 (connection_made / data_received /
connection_lost) 转换为带类型的事件，统一放入单次尝试的事件队列，
由 ConnectionManager 以单一循环依次消费。
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, cast

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Connected:
    """TCP 连接已建立。"""

    transport: asyncio.Transport


@dataclass(frozen=True)
class DataReceived:
    """收到一个数据块 (TCP 不保证消息边界)。"""

    data: bytes


@dataclass(frozen=True)
class TransportFailed:
    """连接失败或传输中断。"""

    exc: BaseException


@dataclass(frozen=True)
class PeerClosed:
    """对端正常关闭了连接 (EOF)。"""


@dataclass(frozen=True)
class TimedOut:
    """超时计时器到期。"""

    timeout: float


@dataclass(frozen=True)
class CancelRequested:
    """调用方显式取消了尝试。"""

    reason: str


HandshakeEvent = Connected | DataReceived | TransportFailed | PeerClosed | TimedOut | CancelRequested


class HandshakeStreamProtocol(asyncio.Protocol):
    """
    asyncio TCP 协议适配器。
    不做任何判断，只把底层回调原样转成事件放入队列。
    """

    def __init__(self, events: "asyncio.Queue[HandshakeEvent]"):
        self.transport: Optional[asyncio.Transport] = None
        self.events = events

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = cast(asyncio.Transport, transport)
        logger.debug(f"TCP 连接已建立: {transport.get_extra_info('peername')}")
        self.events.put_nowait(Connected(self.transport))

    def data_received(self, data: bytes) -> None:
        logger.debug(f"收到 {len(data)} 字节")
        self.events.put_nowait(DataReceived(data))

    def eof_received(self) -> bool:
        logger.debug("对端已关闭写端 (EOF)")
        # 返回 False 让 transport 自行关闭，随后触发 connection_lost(None)
        return False

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if exc:
            logger.warning(f"TCP 连接断开: {exc}")
            self.events.put_nowait(TransportFailed(exc))
        else:
            logger.debug("TCP 连接已关闭")
            self.events.put_nowait(PeerClosed())
        self.transport = None
