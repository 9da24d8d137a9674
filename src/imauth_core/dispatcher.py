# File: src/imauth_core/dispatcher.py
"""
IM 认证核心库 - 结果分发器 (一次性闩锁)

同一次尝试中 data/error/timeout/cancel 可能先后到达，
只有第一个被接受，其余全部丢弃 (不排队、不延后)。
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from .outcome import ConnectionOutcome

logger = logging.getLogger(__name__)

OutcomeCallback = Callable[[ConnectionOutcome], Any]


class ResultDispatcher:
    """单次尝试的一次性结果闩锁。"""

    def __init__(self, on_outcome: OutcomeCallback | None = None) -> None:
        """初始化分发器。

        Args:
            on_outcome: 可选回调，仅在第一次 resolve 时被调用一次。
        """
        loop = asyncio.get_running_loop()
        self._future: asyncio.Future[ConnectionOutcome] = loop.create_future()
        self._on_outcome = on_outcome
        self.dropped = 0

    @property
    def resolved(self) -> bool:
        return self._future.done()

    def resolve(self, outcome: ConnectionOutcome) -> bool:
        """提交一个结果。

        Returns:
            bool: 第一次提交返回 True，之后的提交均被丢弃并返回 False。
        """
        if self._future.done():
            self.dropped += 1
            logger.warning(f"丢弃迟到的结果: {outcome}")
            return False

        self._future.set_result(outcome)
        if self._on_outcome:
            try:
                self._on_outcome(outcome)
            except Exception as e:
                logger.error(f"结果回调执行异常: {e}")
        return True

    async def wait(self) -> ConnectionOutcome:
        """等待并返回已决议的结果。"""
        return await asyncio.shield(self._future)
