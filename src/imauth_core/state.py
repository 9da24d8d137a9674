# File: src/imauth_core/state.py
"""
IM 认证核心库 - 状态模块

负责定义单次登录尝试 (Attempt) 的易变状态。
本模块不包含业务逻辑，仅作为数据容器供 ConnectionManager 读写。
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum, auto

from .outcome import ConnectionOutcome


class AttemptStatus(Enum):
    """单次握手尝试的生命周期状态枚举。

    状态流转示意:
    IDLE -> CONNECTING -> AWAITING_RESPONSE -> RESOLVED
               |                                  ^
               +----------------------------------+
    """

    IDLE = auto()
    """初始状态，尚未发起连接。"""

    CONNECTING = auto()
    """正在建立 TCP 连接。"""

    AWAITING_RESPONSE = auto()
    """连接已建立且请求已发送，等待服务器响应。"""

    RESOLVED = auto()
    """终态。已产生唯一结果，Socket 已释放。"""


@dataclass
class AttemptState:
    """存储单次握手尝试的易变状态数据。

    该对象随尝试创建，随 Socket 释放而废弃，不在多次尝试之间复用。

    Attributes:
        status: 当前尝试所处的状态。
        transport: 连接建立后由流适配器写入的 Transport。
        outcome: 已决议的结果 (仅在 RESOLVED 后有值)。
        released: Socket 是否已释放 (保证释放只执行一次)。
        buffer: 行分帧模式下尚未凑成完整消息的数据。
    """

    status: AttemptStatus = AttemptStatus.IDLE
    transport: asyncio.Transport | None = None
    outcome: ConnectionOutcome | None = None
    released: bool = False
    buffer: bytearray = field(default_factory=bytearray)

    @property
    def is_active(self) -> bool:
        """尝试是否仍在进行中 (尚未决议)。"""
        return self.status in (AttemptStatus.CONNECTING, AttemptStatus.AWAITING_RESPONSE)
