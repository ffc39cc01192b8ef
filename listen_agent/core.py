"""自动朗读智能体核心类"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, Set

from playwright.async_api import Page, async_playwright

from .config import AgentConfig
from .controller import Controller, Sleep
from .memory import Diagnostics
from .models import ControlSnapshot, DecisionKind, TrackingState
from .perception import Perception
from .planner import Planner
from .reporting import ErrorReporter, LoggingSink, SentrySink
from .session import SessionMonitor
from .settings import SettingsStore
from .tracker import StabilityTracker

log = logging.getLogger(__name__)

MUTATION_BINDING = "__autoListenMutation"

# 每帧最多回调一次，回调未完成时不再重复触发
OBSERVER_JS = """
() => {
    if (window.__autoListenObserver || !document.body) return;
    let pending = false;
    const notify = () => {
        if (pending) return;
        pending = true;
        requestAnimationFrame(() => {
            Promise.resolve(window.__autoListenMutation()).finally(() => { pending = false; });
        });
    };
    window.__autoListenObserver = new MutationObserver(notify);
    window.__autoListenObserver.observe(document.body, {
        childList: true,
        subtree: true,
        attributes: true,
    });
}
"""


class AutoListenAgent:
    """
    监视页面上新出现的“朗读”按钮，在回复生成完毕后点击一次。

    定时器与 MutationObserver 回调都会调用 check_state()；
    会话检查在更慢的独立定时器上运行。
    """

    def __init__(
        self,
        page: Optional[Page],
        config: Optional[AgentConfig] = None,
        settings: Optional[SettingsStore] = None,
        reporter: Optional[ErrorReporter] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        self.page = page
        self.config = config or AgentConfig()
        self.settings = settings or SettingsStore(self.config.settings_path)
        self.clock = clock
        self.sleep = sleep

        self.state = TrackingState()
        self.diagnostics = Diagnostics(
            self.config.version, self.config.log_limit, self.config.status_path
        )
        self.reporter = reporter or build_reporter(self.config, self.diagnostics)
        if self.reporter.diagnostics is None:
            self.reporter.diagnostics = self.diagnostics
        self.perception = Perception()
        self.tracker = StabilityTracker(self.diagnostics)
        self.planner = Planner(self.config)
        self.session = SessionMonitor(self.diagnostics)
        self.controller = Controller(
            page, self.perception, self.config, self.diagnostics, sleep,
            on_change=self.export,
        )

        self.enabled = self.settings.enabled
        self.settings.subscribe(self._on_settings_changed)
        self._tasks: Set[asyncio.Task] = set()

    # ── 生命周期 ──────────────────────────────────────

    async def initialize(self):
        """用第一次快照初始化基线"""
        snapshot = await self.perception.snapshot(self.page)
        now = self.clock()
        self.state.last_stable_count = snapshot.count
        self.state.current_count = snapshot.count
        self.state.count_changed_at = now
        self.state.is_generating = snapshot.generating
        self.state.surface_identity = self.perception.surface_identity(self.page)
        self.state.document_id = snapshot.document
        self.state.initialized = True
        self.diagnostics.event(
            "init", f"🎬 Auto-Listen v{self.config.version} 启动，初始按钮数 {snapshot.count}"
        )
        self.export()

    async def attach(self):
        """注册 MutationObserver 回调（导航后通过 init script 重新安装）"""
        await self.page.expose_function(MUTATION_BINDING, self.on_mutation)
        await self.page.add_init_script(f"document.addEventListener('DOMContentLoaded', {OBSERVER_JS})")
        await self.page.evaluate(OBSERVER_JS)

    async def watch(self, stop: asyncio.Event):
        """运行定时器，直到 stop 被设置或页面关闭"""
        await self.guarded(self.initialize(), "init")
        await self.attach()
        await asyncio.gather(
            self._every(self.config.poll_interval, lambda: self.check_state("timer"), stop),
            self._every(self.config.session_interval, self.check_session, stop),
        )
        await self.wait_idle()

    async def run(self, start_url: Optional[str] = None):
        """
        启动浏览器、打开页面并持续监视，直到页面被关闭。
        """
        url = start_url or self.config.start_url
        async with async_playwright() as p:
            if self.config.profile_dir:
                context = await p.chromium.launch_persistent_context(
                    self.config.profile_dir, headless=self.config.headless
                )
                browser = None
            else:
                browser = await p.chromium.launch(headless=self.config.headless)
                context = await browser.new_context()
            page = context.pages[0] if context.pages else await context.new_page()
            self._bind_page(page)

            await page.goto(url)
            log.info("✓ 已打开页面 %s", url)

            stop = asyncio.Event()
            page.on("close", lambda _: stop.set())
            try:
                await self.watch(stop)
            finally:
                await context.close()
                if browser is not None:
                    await browser.close()

    def _bind_page(self, page: Page):
        self.page = page
        self.controller.page = page

    async def _every(self, interval: float, tick: Callable[[], Awaitable[None]], stop: asyncio.Event):
        while not stop.is_set():
            await tick()
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    # ── 主流程 ──────────────────────────────────────

    async def check_state(self, source: str = "timer"):
        await self.guarded(self._check_state(), source)

    async def on_mutation(self):
        await self.check_state("mutation")

    async def _check_state(self):
        if not self.state.initialized:
            await self.initialize()
            return

        snapshot = await self.perception.snapshot(self.page)
        now = self.clock()
        if self.session.check_document(self.state, snapshot, now):
            self.export()
            return

        was_generating = self.state.is_generating
        changed = self.tracker.update(self.state, snapshot, now)
        changed = changed or was_generating != self.state.is_generating
        decision = self.planner.decide(self.state, snapshot.count, now)

        if decision.kind is DecisionKind.REBASE:
            self.diagnostics.record(
                f"基线 {self.state.last_stable_count} → {decision.count} ({decision.reason})"
            )
            self.state.last_stable_count = decision.count
        elif decision.kind is DecisionKind.TRIGGER:
            self.state.last_stable_count = decision.count
            self.diagnostics.event(
                "new_response", f"🆕 新回复 (+{decision.increase})，基线 → {decision.count}"
            )
            self.spawn(self.on_new_response(), "on_new_response")

        if changed or decision.kind is not DecisionKind.NOOP:
            self.export()

    async def on_new_response(self):
        """
        选中最新的未处理按钮并执行确认点击，随后重新校准基线。
        已在处理、已禁用或页面不在前台时直接返回，不留下任何标志。
        """
        if self.state.is_processing:
            self.diagnostics.record("⏸ 已有点击在进行中，忽略")
            return
        if not self.enabled:
            self.diagnostics.record("🚫 自动朗读已禁用")
            return

        self.state.is_processing = True
        try:
            target = await self._acquire_target()
        except BaseException:
            self.state.is_processing = False
            raise
        if target is None:
            self.state.is_processing = False
            self.export()
            return

        self.export()
        try:
            await self.controller.perform(self.state, target)
        finally:
            self.state.is_processing = False
            self.state.processing_ended_at = self.clock()
            self.export()

        await self.sleep(self.config.recalibrate_delay)
        snapshot = await self.perception.snapshot(self.page)
        self.diagnostics.record(f"基线重新校准 → {snapshot.count}")
        self.state.last_stable_count = snapshot.count
        self.export()

    async def _acquire_target(self) -> Optional[ControlSnapshot]:
        if not await self.perception.is_foreground(self.page):
            self.diagnostics.record("🙈 页面不在前台，不自动点击")
            return None
        snapshot = await self.perception.snapshot(self.page)
        target = self.controller.select_target(snapshot, self.state.processed)
        if target is None:
            self.diagnostics.record("❌ 没有未处理的朗读按钮")
        return target

    async def check_session(self):
        await self.guarded(self._check_session(), "session")

    async def _check_session(self):
        identity = self.perception.surface_identity(self.page)
        if self.session.check(self.state, identity, self.clock()):
            self.export()
        self.settings.refresh()

    # ── 辅助 ──────────────────────────────────────

    def spawn(self, coro: Awaitable[None], source: str) -> asyncio.Task:
        """后台运行，不阻塞当前周期"""
        return self._track(self.guarded(coro, source))

    def _track(self, coro: Awaitable[None]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self):
        """等待所有后台任务（含错误上报）结束"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def guarded(self, coro: Awaitable[None], source: str):
        """单个周期的异常不影响后续周期"""
        try:
            await coro
        except Exception as e:
            log.exception("%s 周期出错", source)
            self.diagnostics.event("error", f"❌ {source}: {type(e).__name__}: {e}")
            # 不等待上报完成
            self._track(self.reporter.report(e, {"source": source, "status": self.diagnostics.status}))

    def export(self):
        try:
            self.diagnostics.export(self.state, self.enabled)
        except OSError as e:
            log.warning("写入状态文件失败: %s", e)

    def _on_settings_changed(self, enabled: bool):
        self.enabled = enabled
        self.diagnostics.event("settings", f"⚙ 自动朗读 {'已启用' if enabled else '已禁用'}")
        self.export()


def build_reporter(config: AgentConfig, diagnostics: Optional[Diagnostics] = None) -> ErrorReporter:
    """配置了 DSN 时使用 Sentry，否则只写日志"""
    sink = SentrySink(config.sentry_dsn, config.version) if config.sentry_dsn else LoggingSink()
    return ErrorReporter(sink, diagnostics)
