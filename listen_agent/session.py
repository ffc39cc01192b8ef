"""会话重置：页面标识（URL）或文档变化时清空跟踪状态"""

from .memory import Diagnostics
from .models import SurfaceSnapshot, TrackingState


class SessionMonitor:

    def __init__(self, diagnostics: Diagnostics):
        self.diagnostics = diagnostics

    def check(self, state: TrackingState, identity: str, now: float) -> bool:
        """标识变化时重置状态并返回 True；首次调用只记录标识"""
        if state.surface_identity is None:
            state.surface_identity = identity
            return False
        if identity == state.surface_identity:
            return False

        self.diagnostics.event("session_reset", f"🔄 会话切换: {state.surface_identity} → {identity}")
        state.surface_identity = identity
        self.reset(state, now)
        return True

    def check_document(self, state: TrackingState, snapshot: SurfaceSnapshot, now: float) -> bool:
        """
        同一 URL 重新加载后文档标识会变，旧文档的按钮 id 不再有意义。
        此时按启动时的方式用新快照重新初始化基线，返回 True。
        """
        if state.document_id is None:
            state.document_id = snapshot.document
            return False
        if snapshot.document == state.document_id:
            return False

        self.diagnostics.event("document_reset", f"🔄 页面已重新加载，基线 → {snapshot.count}")
        self.reset(state, now)
        state.document_id = snapshot.document
        state.last_stable_count = snapshot.count
        state.current_count = snapshot.count
        state.is_generating = snapshot.generating
        return True

    @staticmethod
    def reset(state: TrackingState, now: float):
        state.last_stable_count = 0
        state.current_count = 0
        state.count_changed_at = now
        state.is_generating = False
        state.is_processing = False
        state.processed.clear()
