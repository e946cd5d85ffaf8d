"""行为分析模块，累计每次采样的判定，按优先级和冷却时间输出健康建议"""

import logging
import time
from typing import Callable, Optional

from models.data_models import Advice, AnalyzerState, Severity, Verdict

logger = logging.getLogger(__name__)

# 两次哈欠计数的最小间隔（秒）
YAWN_DEBOUNCE = 8.0
# 滑动窗口长度（秒）
RECENT_YAWN_WINDOW = 300.0
RECENT_CLOSED_EYES_WINDOW = 180.0

# 建议触发阈值
SEVERE_FATIGUE_YAWNS = 2
EYE_DANGER_SECONDS = 60
CHRONIC_SLOUCH_SECONDS = 120
FATIGUE_RECENT_YAWN = 60.0
POMODORO_MINUTES = 25
WATER_MINUTES = 60
WORKOUT_MINUTES = 90

SLOUCH_STATUSES = frozenset({
    "slouching",
    "slouching_critical",
    "slight_slouch",
    "narrow_shoulders",
})


class BehaviorAnalyzer:
    """
    维护单个追踪会话的行为状态。

    每次采样先调用 update() 再调用 get_advice()。实例不是线程安全的，
    一个会话独占一个实例。
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        tick_seconds: float = 2,
        advice_interval: float = 45.0,
    ):
        """初始化时钟、采样周期和建议最小间隔"""
        self._clock = clock
        self.tick_seconds = tick_seconds
        self.advice_interval = advice_interval
        self._state = AnalyzerState()
        self.reset()

    @property
    def state(self) -> AnalyzerState:
        return self._state

    def _now(self, now: Optional[float]) -> float:
        return self._clock() if now is None else now

    def update(self, verdict: Optional[Verdict], now: Optional[float] = None) -> None:
        """
        累计一次采样的合并判定。

        各条件相互独立，同一次采样可以同时命中多条。

        Args:
            verdict: 本次采样的合并判定，None 时忽略
            now: 当前时间（秒），缺省读取注入的时钟
        """
        if verdict is None:
            return

        now = self._now(now)
        s = self._state
        s.total_work_seconds += self.tick_seconds

        if getattr(verdict, "is_yawn", False) and (
            s.last_yawn_time is None or now - s.last_yawn_time >= YAWN_DEBOUNCE
        ):
            s.yawn_count += 1
            s.last_yawn_time = now
            s.recent_yawns.append(now)
            s.recent_yawns = [t for t in s.recent_yawns if now - t < RECENT_YAWN_WINDOW]

        if getattr(verdict, "is_eyes_closed", False):
            s.closed_eyes_count += 1
            s.recent_closed_eyes.append(now)
            s.recent_closed_eyes = [
                t for t in s.recent_closed_eyes if now - t < RECENT_CLOSED_EYES_WINDOW
            ]

        if getattr(verdict, "status", None) in SLOUCH_STATUSES:
            s.slouching_seconds += self.tick_seconds

        if getattr(verdict, "severity", None) == Severity.GOOD:
            s.good_posture_seconds += self.tick_seconds

        if getattr(verdict, "is_too_close", False):
            s.too_close_seconds += self.tick_seconds

    def get_advice(self, now: Optional[float] = None) -> Optional[Advice]:
        """
        按优先级检查建议规则，返回第一条命中的建议。

        距上次建议不足 advice_interval 秒时直接返回 None；同类型建议
        不会连续出现，不同类型的建议不受此限制。

        Args:
            now: 当前时间（秒），缺省读取注入的时钟

        Returns:
            Advice 或 None
        """
        now = self._now(now)
        s = self._state

        if s.last_advice_time is not None and now - s.last_advice_time < self.advice_interval:
            return None

        # critical
        if len(s.recent_yawns) >= SEVERE_FATIGUE_YAWNS and s.last_advice_type != "severe_fatigue":
            s.last_break_time = now
            return self._emit(now, Advice(
                title="您非常疲劳！",
                text=f"您最近 5 分钟内打了 {len(s.recent_yawns)} 次哈欠，请立即休息并走动一下。",
                action_text="休息一下",
                type="severe_fatigue",
                priority="critical",
                needs_workout=True,
            ))

        if s.too_close_seconds > EYE_DANGER_SECONDS and s.last_advice_type != "eye_danger":
            return self._emit(now, Advice(
                title="注意保护视力！",
                text="您离屏幕太近的时间过长，可能损伤眼睛。请后退并做一组眼保健操。",
                action_text="眼保健操",
                type="eye_danger",
                priority="critical",
                needs_workout=True,
            ))

        if s.slouching_seconds > CHRONIC_SLOUCH_SECONDS and s.last_advice_type != "chronic_slouch":
            s.last_workout_time = now
            return self._emit(now, Advice(
                title="驼背时间过长！",
                text=f"您已经以不良坐姿坐了 {int(s.slouching_seconds // 60)} 分钟，长期如此会导致背痛。",
                action_text="背部练习",
                type="chronic_slouch",
                priority="critical",
                needs_workout=True,
            ))

        # high
        if (
            s.yawn_count >= 1
            and s.last_advice_type != "fatigue"
            and s.last_yawn_time is not None
            and now - s.last_yawn_time < FATIGUE_RECENT_YAWN
        ):
            return self._emit(now, Advice(
                title="出现疲劳迹象",
                text="您开始打哈欠了，也许该休息一下或喝杯水。",
                action_text="暂停一下",
                type="fatigue",
                priority="high",
                needs_workout=False,
            ))

        # medium
        minutes_since_break = (now - s.last_break_time) / 60.0
        if minutes_since_break >= POMODORO_MINUTES and s.last_advice_type != "pomodoro_break":
            s.last_break_time = now
            return self._emit(now, Advice(
                title="该休息了！",
                text=f"您已经连续工作 {int(minutes_since_break)} 分钟，按番茄工作法请休息 5 分钟。",
                action_text="休息 5 分钟",
                type="pomodoro_break",
                priority="medium",
                needs_workout=True,
            ))

        minutes_since_water = (now - s.last_water_time) / 60.0
        if minutes_since_water >= WATER_MINUTES and s.last_advice_type != "water_reminder":
            s.last_water_time = now
            return self._emit(now, Advice(
                title="记得喝水！",
                text="距离上次提醒已经一小时了，喝杯水有助于保持专注。",
                action_text="去喝水",
                type="water_reminder",
                priority="medium",
                needs_workout=False,
            ))

        minutes_since_workout = (now - s.last_workout_time) / 60.0
        if minutes_since_workout >= WORKOUT_MINUTES and s.last_advice_type != "workout_reminder":
            s.last_workout_time = now
            return self._emit(now, Advice(
                title="起来活动一下！",
                text="已经过去一个半小时了，做几组颈部和背部练习，避免酸痛和疲劳。",
                action_text="开始练习",
                type="workout_reminder",
                priority="medium",
                needs_workout=True,
            ))

        return None

    def _emit(self, now: float, advice: Advice) -> Advice:
        self._state.last_advice_time = now
        self._state.last_advice_type = advice.type
        logger.debug("建议: %s (%s)", advice.type, advice.priority)
        return advice

    def reset(self, now: Optional[float] = None) -> None:
        """开始新会话：计数清零，窗口清空，休息/喝水/运动计时从当前时间开始"""
        now = self._now(now)
        self._state = AnalyzerState(
            last_break_time=now,
            last_water_time=now,
            last_workout_time=now,
        )

    def summary(self) -> dict:
        """供界面和统计使用的计数快照"""
        s = self._state
        good_ratio = 0.0
        if s.total_work_seconds > 0:
            good_ratio = round(s.good_posture_seconds / s.total_work_seconds * 100, 1)
        return {
            "yawn_count": s.yawn_count,
            "closed_eyes_count": s.closed_eyes_count,
            "too_close_seconds": s.too_close_seconds,
            "slouching_seconds": s.slouching_seconds,
            "good_posture_seconds": s.good_posture_seconds,
            "total_work_seconds": s.total_work_seconds,
            "good_posture_percent": good_ratio,
            "recent_yawns": len(s.recent_yawns),
            "recent_closed_eyes": len(s.recent_closed_eyes),
            "last_advice_type": s.last_advice_type,
        }
