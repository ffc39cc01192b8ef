"""稳定性跟踪：维护按钮数量及其最后一次变化的时间"""

from .memory import Diagnostics
from .models import SurfaceSnapshot, TrackingState


class StabilityTracker:
    """只维护派生事实，不做任何动作"""

    def __init__(self, diagnostics: Diagnostics):
        self.diagnostics = diagnostics

    def update(self, state: TrackingState, snapshot: SurfaceSnapshot, now: float) -> bool:
        """
        用新快照更新 current_count / count_changed_at，返回数量是否变化。
        同时根据“停止生成”按钮切换 is_generating。
        """
        if snapshot.generating and not state.is_generating:
            state.is_generating = True
            self.diagnostics.record("🚀 正在生成回复...")
        elif not snapshot.generating and state.is_generating:
            state.is_generating = False
            self.diagnostics.record("⏳ 生成结束")

        count = snapshot.count
        if count == state.current_count:
            return False

        self.diagnostics.record(
            f"按钮数量变化 {state.current_count} → {count} (基线 {state.last_stable_count})"
        )
        state.current_count = count
        state.count_changed_at = now
        return True

    @staticmethod
    def stable_for(state: TrackingState, now: float) -> float:
        return now - state.count_changed_at
