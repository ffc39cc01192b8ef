"""感知模块：提取页面中的“朗读”按钮及相关状态"""

from typing import Any, Dict
from urllib.parse import urldefrag

from playwright.async_api import Page

from .models import ControlSnapshot, ControlState, SurfaceSnapshot

# 多语言按钮标签查找表
SELECTORS: Dict[str, Any] = {
    "listen": (
        'button[aria-label="Écouter"], '
        'button[aria-label="Listen"], '
        'button[aria-label="Read aloud"]'
    ),
    "secondary": (
        'button[aria-label="Mettre en pause"], '
        'button[aria-label="Pause"], '
        'button[aria-label="Arrêter la lecture"], '
        'button[aria-label="Stop listening"]'
    ),
    "stop": [
        'button[aria-label*="Interrompre"]',
        'button[aria-label*="Stop"]:not([aria-label="Stop listening"])',
        'button[aria-label*="Arrêter"]:not([aria-label="Arrêter la lecture"])',
        '[data-testid="stop-button"]',
    ],
}

# 没有渲染盒子（自身或祖先被隐藏）的元素视为不可见
SNAPSHOT_JS = """
(sel) => {
    const isVisible = (el) => el.getClientRects().length > 0;
    // 每个文档一个随机标识，id 计数器随文档重置
    if (!window.__autoListenDoc) {
        window.__autoListenDoc = Date.now().toString(36) + Math.random().toString(36).slice(2);
    }
    let nextId = window.__autoListenNextId || 0;

    const tag = (el) => {
        if (!el.hasAttribute('data-auto-listen-id')) {
            nextId += 1;
            el.setAttribute('data-auto-listen-id', String(nextId));
        }
        return Number(el.getAttribute('data-auto-listen-id'));
    };

    const collect = (selector) => Array.from(document.querySelectorAll(selector))
        .filter(isVisible)
        .map(el => ({ id: tag(el), label: el.getAttribute('aria-label') || '' }));

    const listen = collect(sel.listen);
    const secondary = collect(sel.secondary);
    const generating = sel.stop.some(
        s => Array.from(document.querySelectorAll(s)).some(isVisible)
    );

    window.__autoListenNextId = nextId;
    return { listen, secondary, generating, document: window.__autoListenDoc };
}
"""

INSPECT_JS = """
(id) => {
    const el = document.querySelector(`[data-auto-listen-id="${id}"]`);
    if (!el) return { present: false, visible: false, label: null };
    return {
        present: true,
        visible: el.getClientRects().length > 0,
        label: el.getAttribute('aria-label'),
    };
}
"""

PLAYBACK_JS = """
(secondary) => {
    const visible = Array.from(document.querySelectorAll(secondary))
        .some(el => el.getClientRects().length > 0);
    if (visible) return true;
    return Array.from(document.querySelectorAll('audio, video'))
        .some(m => !m.paused && !m.ended && m.currentTime > 0);
}
"""

FOREGROUND_JS = "() => document.visibilityState === 'visible'"


class Perception:
    """
    感知模块：每次调用都重新查询页面，不保留历史。
    按钮的身份通过写入 data-auto-listen-id 属性保持稳定。
    """

    async def snapshot(self, page: Page) -> SurfaceSnapshot:
        """
        返回当前可见的朗读按钮和次级状态按钮、“正在生成”标志以及文档标识。
        没有匹配时返回空快照。
        """
        result = await page.evaluate(SNAPSHOT_JS, SELECTORS)
        document = result["document"]
        return SurfaceSnapshot(
            listen=[
                ControlSnapshot(id=item["id"], kind="listen", label=item["label"], document=document)
                for item in result["listen"]
            ],
            secondary=[
                ControlSnapshot(id=item["id"], kind="secondary", label=item["label"], document=document)
                for item in result["secondary"]
            ],
            generating=bool(result["generating"]),
            document=document,
        )

    async def inspect(self, page: Page, control_id: int) -> ControlState:
        """按 id 重新检查同一个按钮"""
        result = await page.evaluate(INSPECT_JS, control_id)
        return ControlState(
            present=result["present"],
            visible=result["visible"],
            label=result["label"],
        )

    async def playback_active(self, page: Page) -> bool:
        return bool(await page.evaluate(PLAYBACK_JS, SELECTORS["secondary"]))

    async def is_foreground(self, page: Page) -> bool:
        return bool(await page.evaluate(FOREGROUND_JS))

    def surface_identity(self, page: Page) -> str:
        """当前会话的标识：去掉 fragment 的 URL"""
        url, _ = urldefrag(page.url)
        return url
