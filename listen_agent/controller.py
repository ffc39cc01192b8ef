"""执行模块：点击朗读按钮并确认播放已开始"""

import asyncio
from typing import Awaitable, Callable, Iterable, Optional, Tuple

from playwright.async_api import Page

from .config import AgentConfig
from .memory import Diagnostics
from .models import ControlSnapshot, SurfaceSnapshot, TrackingState
from .perception import Perception

# 按物理顺序派发 mousedown → mouseup → click，均冒泡
CLICK_JS = """
(id) => {
    const el = document.querySelector(`[data-auto-listen-id="${id}"]`);
    if (!el) return false;
    el.scrollIntoView({ block: 'center', behavior: 'instant' });
    if (typeof el.focus === 'function') el.focus();
    for (const type of ['mousedown', 'mouseup', 'click']) {
        el.dispatchEvent(new MouseEvent(type, { bubbles: true, cancelable: true, view: window }));
    }
    return true;
}
"""

Sleep = Callable[[float], Awaitable[None]]


class Controller:
    """执行模块：对单个按钮执行带确认和一次重试的点击"""

    def __init__(
        self,
        page: Optional[Page],
        perception: Perception,
        config: AgentConfig,
        diagnostics: Diagnostics,
        sleep: Sleep = asyncio.sleep,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.page = page
        self.perception = perception
        self.config = config
        self.diagnostics = diagnostics
        self.sleep = sleep
        # 计数变化后立即刷新状态导出
        self.on_change = on_change or (lambda: None)

    @staticmethod
    def select_target(snapshot: SurfaceSnapshot, processed: Iterable[Tuple[str, int]]) -> Optional[ControlSnapshot]:
        """选出最新出现、且未处理过的朗读按钮"""
        done = set(processed)
        for control in reversed(snapshot.listen):
            if control.key not in done:
                return control
        return None

    async def perform(self, state: TrackingState, control: ControlSnapshot) -> bool:
        """
        点击按钮并确认。任一信号成立即视为成功：
        (a) 出现次级状态按钮或正在播放的媒体
        (b) 按钮自身的 label 变了
        (c) 按钮不再可见
        第一次检查失败后再等一小段时间复查，仍失败则对同一个按钮重试一次。
        """
        self.diagnostics.click_attempts += 1
        label = control.label

        self.diagnostics.event("click", f"🎯 点击 [{control.id}] \"{label}\"")
        self.on_change()
        await self._click(control)
        await self.sleep(self.config.confirm_delay)
        if await self._confirmed(state, control, label, "首次检查"):
            return True

        await self.sleep(self.config.recheck_delay)
        if await self._confirmed(state, control, label, "延迟复查"):
            return True

        self.diagnostics.record(f"🔁 未确认播放，重试点击 [{control.id}]")
        await self._click(control)
        await self.sleep(self.config.confirm_delay)
        if await self._confirmed(state, control, label, "重试后检查"):
            return True

        self.diagnostics.click_failures += 1
        self.diagnostics.event("click_failed", f"❌ 点击 [{control.id}] 后未检测到播放")
        self.on_change()
        return False

    async def _click(self, control: ControlSnapshot):
        dispatched = await self.page.evaluate(CLICK_JS, control.id)
        if not dispatched:
            self.diagnostics.record(f"⚠ 按钮 [{control.id}] 已不在页面中")

    async def _confirmed(self, state: TrackingState, control: ControlSnapshot, label: str, stage: str) -> bool:
        signal = await self._signal(control, label)
        if signal is None:
            return False
        state.processed.add(control.key)
        self.diagnostics.click_successes += 1
        self.diagnostics.event("click_success", f"✓ {stage}: {signal}")
        self.on_change()
        return True

    async def _signal(self, control: ControlSnapshot, label: str) -> Optional[str]:
        if await self.perception.playback_active(self.page):
            return "正在播放"
        current = await self.perception.inspect(self.page, control.id)
        if current.present and current.label != label:
            return f"label 变为 \"{current.label}\""
        if not current.present or not current.visible:
            return "按钮已隐藏"
        return None
