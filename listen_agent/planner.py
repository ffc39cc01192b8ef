"""规划模块：根据稳定性状态决定触发、重设基线或等待"""

from .config import AgentConfig
from .models import Decision, DecisionKind, TrackingState
from .tracker import StabilityTracker


class Planner:
    """规划模块：纯函数式决策，不修改状态"""

    def __init__(self, config: AgentConfig):
        self.config = config

    def in_grace_period(self, state: TrackingState, now: float) -> bool:
        if state.processing_ended_at is None:
            return False
        return now - state.processing_ended_at < self.config.grace_period

    def decide(self, state: TrackingState, count: int, now: float) -> Decision:
        """
        按顺序判断：
        1. 数量等于基线 → noop
        2. 数量增加且已稳定、未生成、未处理、不在宽限期 →
           增量 <= max_response_increase 时 trigger，否则（切换会话）rebase
        3. 数量减少且已稳定、未处理、不在宽限期 → rebase
        其余情况继续等待。
        """
        baseline = state.last_stable_count
        if count == baseline:
            return Decision(DecisionKind.NOOP, count)

        stable = StabilityTracker.stable_for(state, now) >= self.config.stable_duration
        grace = self.in_grace_period(state, now)

        if count > baseline:
            if not stable:
                return Decision(DecisionKind.NOOP, count, reason="unstable")
            if state.is_generating:
                return Decision(DecisionKind.NOOP, count, reason="generating")
            if state.is_processing:
                return Decision(DecisionKind.NOOP, count, reason="processing")
            if grace:
                return Decision(DecisionKind.NOOP, count, reason="grace")

            increase = count - baseline
            if increase <= self.config.max_response_increase:
                return Decision(DecisionKind.TRIGGER, count, increase, "new response")
            return Decision(DecisionKind.REBASE, count, increase, "conversation switch")

        if stable and not state.is_processing and not grace:
            return Decision(DecisionKind.REBASE, count, count - baseline, "count decreased")
        return Decision(DecisionKind.NOOP, count, reason="waiting")
