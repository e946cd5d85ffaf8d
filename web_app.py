"""Flask Web 接口 - 坐姿与健康监测系统"""

import datetime
import logging
import threading
import time

import cv2
from flask import Flask, Response, jsonify, request

from classifiers.posture_classifier import PostureClassifier
from detectors.landmark_source import LandmarkSource
from display.renderer import DisplayRenderer
from evaluators.behavior_analyzer import BehaviorAnalyzer
from evaluators.exercise_recommender import generate_recommendations, should_show_exercise_alert
from main import load_config
from sampling.sampling_loop import SamplingLoop
from storage.posture_log import PostureLog

logger = logging.getLogger(__name__)

app = Flask(__name__)

# 严重程度 -> 日志级别
_LEVELS = {"critical": "danger", "high": "warning", "medium": "warning"}


class WebDetectionSystem:
    """Web 版监测系统，支持 MJPEG 视频流推送和实时数据 API。"""

    MAX_LOG_ENTRIES = 200

    def __init__(self, config=None, source_factory=None):
        self.config = config or load_config(None)
        self.user_id = self.config["user_id"]
        self._source_factory = source_factory or (
            lambda: LandmarkSource(camera_index=self.config["camera_index"])
        )
        self._source = None
        self._lock = threading.Lock()
        self._latest_frame = None
        self._latest_data = self._empty_data()
        self._pending_advice = None
        self._logs = []
        self._log_lock = threading.Lock()
        self._prev_status = None
        self.posture_log = PostureLog(self.config["log_path"])
        self.renderer = DisplayRenderer(min_confidence=self.config["min_confidence"])
        self.analyzer = BehaviorAnalyzer(
            tick_seconds=self.config["interval_sec"],
            advice_interval=self.config["advice_interval_sec"],
        )
        self.loop = None

    @staticmethod
    def _empty_data():
        return {
            "status": None, "message": "", "detail": None,
            "severity": "none", "color": "",
            "tracking": False, "timestamp": None,
        }

    @property
    def running(self):
        return self.loop is not None and self.loop.is_running

    def start(self):
        """打开摄像头并启动采样循环。"""
        if self.running:
            return True
        source = self._source_factory()
        if not source.open():
            self._add_log("danger", "无法打开摄像头")
            return False
        self._source = source
        self.analyzer.advice_interval = self.config["advice_interval_sec"]
        self.loop = SamplingLoop(
            source,
            analyzer=self.analyzer,
            interval=self.config["interval_sec"],
            on_verdict=self._on_verdict,
            on_advice=self._on_advice,
            posture_classifier=PostureClassifier(min_confidence=self.config["min_confidence"]),
        )
        self.loop.start()
        self._add_log("info", "追踪已启动，摄像头已开启")
        return True

    def stop(self):
        """停止追踪；进行中的推理结果会被丢弃。"""
        if self.loop is not None:
            self.loop.stop(timeout=5.0)
            self.loop = None
        if self._source is not None:
            self._source.close()
            self._source = None
        with self._lock:
            self._latest_data = self._empty_data()
            self._latest_frame = None
            self._pending_advice = None
        self._prev_status = None
        self._add_log("info", "追踪已停止")

    def _on_verdict(self, verdict, sample):
        data = verdict.to_dict()
        data["tracking"] = True
        data["timestamp"] = time.time()

        jpeg = None
        if sample.frame is not None:
            rendered = self.renderer.render(sample.frame, sample.pose, verdict, self._pending_advice)
            ok, buf = cv2.imencode(".jpg", rendered, [cv2.IMWRITE_JPEG_QUALITY, 80])
            if ok:
                jpeg = buf.tobytes()

        with self._lock:
            self._latest_data = data
            if jpeg is not None:
                self._latest_frame = jpeg

        self._check_status_change(verdict)

        try:
            self.posture_log.record_verdict(self.user_id, verdict, data["timestamp"])
        except OSError:
            logger.exception("写入姿态日志失败")

    def _on_advice(self, advice):
        with self._lock:
            self._pending_advice = advice
        self._add_log(_LEVELS.get(advice.priority, "info"), f"{advice.title} {advice.text}")
        try:
            self.posture_log.record_advice(self.user_id, advice)
        except OSError:
            logger.exception("写入建议日志失败")

    def _add_log(self, level, message):
        """添加一条系统日志。level: info / warning / danger"""
        entry = {
            "time": datetime.datetime.now().strftime("%H:%M:%S"),
            "level": level,
            "message": message,
        }
        with self._log_lock:
            self._logs.append(entry)
            if len(self._logs) > self.MAX_LOG_ENTRIES:
                self._logs = self._logs[-self.MAX_LOG_ENTRIES:]

    def _check_status_change(self, verdict):
        """判定状态变化时记录日志。"""
        if verdict.status == self._prev_status:
            return
        self._prev_status = verdict.status
        if verdict.message:
            level = _LEVELS.get(verdict.severity.value, "info")
            self._add_log(level, verdict.message)

    def get_logs(self, since=0):
        """获取日志，since 为起始索引。"""
        with self._log_lock:
            return self._logs[since:], len(self._logs)

    def get_frame(self):
        with self._lock:
            return self._latest_frame

    def get_data(self):
        with self._lock:
            data = dict(self._latest_data)
        loop = self.loop
        data["summary"] = loop.summary() if loop is not None else self.analyzer.summary()
        return data

    def pop_advice(self):
        """取出待显示的建议，取出后清空。"""
        with self._lock:
            advice = self._pending_advice
            self._pending_advice = None
        return advice

    def update_config(self, config):
        """
        更新采样周期、置信度阈值和建议间隔。

        采样周期和建议间隔在下一次 start() 创建采样循环时生效，
        追踪进行中不会改动分析器。
        """
        for key in ("interval_sec", "min_confidence", "advice_interval_sec"):
            if config.get(key) is not None:
                self.config[key] = config[key]
        self.renderer.min_confidence = self.config["min_confidence"]

    def recommendations(self, user_id=None):
        records = self.posture_log.query(user_id or self.user_id)
        now = time.time()
        return {
            "recommendations": generate_recommendations(records, now),
            "alert": should_show_exercise_alert(records, now),
        }


# 全局监测系统实例
system = WebDetectionSystem()


# ---- Flask 路由 ----

@app.route("/api/start", methods=["POST"])
def api_start():
    ok = system.start()
    return jsonify({"success": ok, "message": "追踪已启动" if ok else "无法打开摄像头"})


@app.route("/api/stop", methods=["POST"])
def api_stop():
    system.stop()
    return jsonify({"success": True, "message": "追踪已停止"})


@app.route("/api/data")
def api_data():
    return jsonify(system.get_data())


@app.route("/api/advice")
def api_advice():
    advice = system.pop_advice()
    return jsonify({"advice": advice.to_dict() if advice is not None else None})


@app.route("/api/config", methods=["POST"])
def api_config():
    data = request.get_json(force=True)
    system.update_config(data)
    return jsonify({"success": True, "message": "配置已更新", "config": system.config})


@app.route("/api/logs")
def api_logs():
    since = request.args.get("since", 0, type=int)
    logs, total = system.get_logs(since)
    return jsonify({"logs": logs, "total": total})


@app.route("/api/recommendations")
def api_recommendations():
    user_id = request.args.get("user")
    return jsonify(system.recommendations(user_id))


@app.route("/video_feed")
def video_feed():
    def generate():
        while system.running:
            frame = system.get_frame()
            if frame is not None:
                yield (b"--frame\r\nContent-Type: image/jpeg\r\n\r\n" + frame + b"\r\n")
            time.sleep(0.1)
    return Response(generate(), mimetype="multipart/x-mixed-replace; boundary=frame")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.run(host="0.0.0.0", port=5000, debug=False, threaded=True)
