"""坐姿与健康监测系统入口文件"""

import argparse
import json
import logging
import sys
import time

import cv2

from detectors.landmark_source import LandmarkSource
from display.renderer import DisplayRenderer
from evaluators.behavior_analyzer import BehaviorAnalyzer
from classifiers.posture_classifier import PostureClassifier
from sampling.sampling_loop import SamplingLoop
from storage.posture_log import PostureLog

# 默认配置
_DEFAULTS = {
    "interval_sec": 2.0,
    "min_confidence": 0.4,
    "advice_interval_sec": 45.0,
    "camera_index": 0,
    "user_id": "local",
    "log_path": "data/posture_log.jsonl",
}


def load_config(config_path=None):
    """从 JSON 配置文件加载参数，缺失字段使用默认值。"""
    config = dict(_DEFAULTS)

    if config_path is None:
        return config

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        print(f"警告: 配置文件不存在 {config_path}，使用默认配置")
        return config
    except json.JSONDecodeError:
        print(f"警告: 配置文件格式错误 {config_path}，使用默认配置")
        return config

    # 用配置文件中的值覆盖默认值
    for key in _DEFAULTS:
        if key in data and data[key] is not None:
            config[key] = data[key]

    return config


class DetectionSystem:
    """坐姿监测主程序，把摄像头、采样循环、事件日志和预览窗口连在一起。"""

    def __init__(self, config_path=None, user_id=None, source=None, headless=False):
        config = load_config(config_path)
        self.config = config
        self.user_id = user_id or config["user_id"]
        self.headless = headless

        self.source = source or LandmarkSource(camera_index=config["camera_index"])
        self.posture_log = PostureLog(config["log_path"])
        self.renderer = DisplayRenderer(min_confidence=config["min_confidence"])
        self.analyzer = BehaviorAnalyzer(
            tick_seconds=config["interval_sec"],
            advice_interval=config["advice_interval_sec"],
        )
        self.loop = SamplingLoop(
            self.source,
            analyzer=self.analyzer,
            interval=config["interval_sec"],
            on_verdict=self._on_verdict,
            on_advice=self._on_advice,
            posture_classifier=PostureClassifier(min_confidence=config["min_confidence"]),
        )

        self._latest_frame = None
        self._latest_pose = None
        self._latest_verdict = None
        self._latest_advice = None

    def _on_verdict(self, verdict, sample):
        """记录每次采样的判定，并缓存最新画面供预览。"""
        self._latest_frame = sample.frame
        self._latest_pose = sample.pose
        self._latest_verdict = verdict
        self.posture_log.record_verdict(self.user_id, verdict)
        if self.headless:
            print(f"[{time.strftime('%H:%M:%S')}] {verdict.status} {verdict.message}")

    def _on_advice(self, advice):
        self._latest_advice = advice
        self.posture_log.record_advice(self.user_id, advice)
        print(f"建议: {advice.title} - {advice.text}")

    def run(self):
        """打开摄像头并启动采样循环。"""
        if not self.source.open():
            print("无法打开摄像头")
            sys.exit(1)

        self.loop.start()
        try:
            self._main_loop()
        finally:
            self.stop()

    def _main_loop(self):
        """预览主循环；无界面模式下只等待 Ctrl+C。"""
        if self.headless:
            try:
                while self.loop.is_running:
                    time.sleep(0.5)
            except KeyboardInterrupt:
                pass
            return

        while self.loop.is_running:
            frame = self._latest_frame
            if frame is not None:
                rendered = self.renderer.render(
                    frame, self._latest_pose, self._latest_verdict, self._latest_advice,
                )
                cv2.imshow("坐姿监测", rendered)

            key = cv2.waitKey(30) & 0xFF
            if key == ord("q"):
                break
            if key == ord("d"):
                # 关闭当前建议
                self._latest_advice = None

    def stop(self):
        """停止采样、释放摄像头、关闭所有窗口。"""
        self.loop.stop(timeout=5.0)
        self.source.close()
        if not self.headless:
            cv2.destroyAllWindows()


def main():
    parser = argparse.ArgumentParser(description="坐姿与健康监测系统")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="JSON 配置文件路径",
    )
    parser.add_argument(
        "--user",
        type=str,
        default=None,
        help="用户标识，用于事件日志",
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="不显示预览窗口，只在终端输出判定",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="日志级别",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    system = DetectionSystem(config_path=args.config, user_id=args.user, headless=args.headless)
    system.run()


if __name__ == "__main__":
    main()
