"""采样循环：按固定周期读取关键点、分类、合并、更新行为分析并发出建议"""

import logging
import threading
import time
from typing import Callable, Optional

from classifiers.face_classifier import FaceClassifier
from classifiers.posture_classifier import PostureClassifier
from evaluators.behavior_analyzer import BehaviorAnalyzer
from evaluators.result_combiner import combine_results
from models.data_models import Advice, TickResult, Verdict

logger = logging.getLogger(__name__)


class SamplingLoop:
    """
    单个追踪会话的采样循环。

    同一时刻最多只有一次关键点推理在进行；stop() 之后才返回的推理结果
    会被丢弃，不会写入已重置的分析器。
    """

    def __init__(
        self,
        source,
        analyzer: Optional[BehaviorAnalyzer] = None,
        interval: float = 2.0,
        on_verdict: Optional[Callable[[Verdict, object], None]] = None,
        on_advice: Optional[Callable[[Advice], None]] = None,
        posture_classifier: Optional[PostureClassifier] = None,
        face_classifier: Optional[FaceClassifier] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            source: 带 read() -> Optional[LandmarkSample] 方法的关键点来源
            analyzer: 本会话独占的行为分析器
            interval: 采样周期（秒）
            on_verdict: 每次采样的合并判定回调 (verdict, sample)
            on_advice: 发出建议时的回调
        """
        self.source = source
        self.interval = interval
        self.analyzer = analyzer or BehaviorAnalyzer(clock=clock, tick_seconds=interval)
        self.posture_classifier = posture_classifier or PostureClassifier()
        self.face_classifier = face_classifier or FaceClassifier()
        self.on_verdict = on_verdict
        self.on_advice = on_advice
        self._clock = clock

        self._inflight = threading.Lock()
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._generation = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """开始新会话：重置分析器并启动后台采样线程"""
        if self.is_running:
            return
        with self._state_lock:
            self._generation += 1
            # 计数增量始终等于实际采样周期
            self.analyzer.tick_seconds = self.interval
            self.analyzer.reset()
        # 每次运行使用独立的停止事件，超时未退出的旧线程不会被重新唤醒
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, args=(self._stop_event,), daemon=True)
        self._thread.start()
        logger.info("采样循环已启动，周期 %.1f 秒", self.interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        """停止调度后续采样；进行中的推理结果将被丢弃"""
        with self._state_lock:
            self._generation += 1
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None
        logger.info("采样循环已停止")

    def summary(self) -> dict:
        """在状态锁内读取分析器统计，供其他线程调用"""
        with self._state_lock:
            return self.analyzer.summary()

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            started = self._clock()
            self.tick()
            # 固定节拍；单次采样超时则立即开始下一次，不会重叠
            remaining = self.interval - (self._clock() - started)
            if remaining > 0:
                stop_event.wait(remaining)

    def tick(self) -> Optional[TickResult]:
        """
        执行一次采样。

        Returns:
            TickResult；跳过本次采样（推理进行中、推理失败、无画面、
            已停止）时返回 None
        """
        if not self._inflight.acquire(blocking=False):
            logger.debug("上一次推理尚未完成，跳过本次采样")
            return None
        try:
            return self._tick()
        finally:
            self._inflight.release()

    def _tick(self) -> Optional[TickResult]:
        generation = self._generation

        try:
            sample = self.source.read()
        except Exception:
            logger.exception("关键点推理失败，跳过本次采样")
            return None

        if sample is None:
            return None

        posture = self.posture_classifier.classify(sample.pose)
        face = self.face_classifier.classify(sample.face, sample.frame_width)
        verdict = combine_results(posture, face)

        with self._state_lock:
            if generation != self._generation:
                logger.debug("会话已结束，丢弃迟到的推理结果")
                return None
            now = self._clock()
            self.analyzer.update(verdict, now=now)
            advice = self.analyzer.get_advice(now=now)

        self._notify(self.on_verdict, verdict, sample)
        if advice is not None:
            logger.info("发出建议: %s", advice.type)
            self._notify(self.on_advice, advice)

        return TickResult(verdict=verdict, advice=advice, timestamp=now)

    @staticmethod
    def _notify(callback, *args) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("采样回调执行失败")
