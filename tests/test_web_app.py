"""Flask Web 接口测试"""

import threading
import time
from unittest.mock import MagicMock

import numpy as np
import pytest

import web_app
from classifiers.face_classifier import make_face_verdict
from classifiers.posture_classifier import make_pose_verdict
from main import load_config
from models.data_models import Advice, LandmarkSample
from web_app import WebDetectionSystem, app


def _fake_source(opened=True):
    source = MagicMock()
    source.open.return_value = opened
    source.read.return_value = LandmarkSample(pose=None, face=None, frame_width=640)
    return source


def _advice():
    return Advice("驼背时间过长！", "请挺直后背", "背部练习", "chronic_slouch", "critical", True)


@pytest.fixture
def source():
    return _fake_source()


@pytest.fixture
def system(tmp_path, monkeypatch, source):
    config = load_config(None)
    config["log_path"] = str(tmp_path / "log.jsonl")
    config["user_id"] = "web"
    web_system = WebDetectionSystem(config=config, source_factory=lambda: source)
    monkeypatch.setattr(web_app, "system", web_system)
    yield web_system
    web_system.stop()


@pytest.fixture
def client(system):
    app.config["TESTING"] = True
    return app.test_client()


class TestStartStop:
    def test_start_and_stop(self, client, system, source):
        resp = client.post("/api/start")
        assert resp.get_json()["success"] is True
        assert system.running
        source.open.assert_called_once()

        resp = client.post("/api/stop")
        assert resp.get_json()["success"] is True
        assert not system.running
        source.close.assert_called_once()

    def test_start_twice(self, client, system, source):
        client.post("/api/start")
        client.post("/api/start")
        source.open.assert_called_once()

    def test_start_fails_without_camera(self, client, tmp_path, monkeypatch):
        config = load_config(None)
        config["log_path"] = str(tmp_path / "log.jsonl")
        failing = WebDetectionSystem(config=config, source_factory=lambda: _fake_source(False))
        monkeypatch.setattr(web_app, "system", failing)

        data = client.post("/api/start").get_json()
        assert data["success"] is False
        assert data["message"] == "无法打开摄像头"
        logs, _ = failing.get_logs()
        assert logs[-1]["level"] == "danger"

    def test_stop_clears_latest_data(self, system):
        system._on_verdict(make_pose_verdict("slouching"), LandmarkSample(None, None, 640))
        system._on_advice(_advice())
        system.stop()
        assert system.get_data()["status"] is None
        assert system.pop_advice() is None


class TestData:
    def test_data_before_start(self, client):
        data = client.get("/api/data").get_json()
        assert data["status"] is None
        assert data["tracking"] is False
        assert data["summary"]["total_work_seconds"] == 0

    def test_data_after_verdict(self, client, system):
        system._on_verdict(make_face_verdict("too_close"), LandmarkSample(None, None, 640))
        data = client.get("/api/data").get_json()
        assert data["status"] == "too_close"
        assert data["severity"] == "critical"
        assert data["is_too_close"] is True
        assert data["tracking"] is True

    def test_verdict_is_logged_to_file(self, system):
        system._on_verdict(make_pose_verdict("slouching"), LandmarkSample(None, None, 640))
        assert [r.status for r in system.posture_log.query("web")] == ["slouching"]

    def test_frame_is_jpeg(self, system):
        frame = np.zeros((120, 160, 3), dtype=np.uint8)
        system._on_verdict(make_pose_verdict("perfect"), LandmarkSample(None, None, 160, frame))
        assert system.get_frame()[:2] == b"\xff\xd8"

    def test_status_change_is_logged_once(self, system):
        verdict = make_pose_verdict("slouching")
        sample = LandmarkSample(None, None, 640)
        system._on_verdict(verdict, sample)
        system._on_verdict(verdict, sample)
        logs, total = system.get_logs()
        assert total == 1
        assert logs[0]["level"] == "warning"
        assert logs[0]["message"] == verdict.message


class TestAdvice:
    def test_advice_is_popped_once(self, client, system):
        system._on_advice(_advice())
        data = client.get("/api/advice").get_json()
        assert data["advice"]["type"] == "chronic_slouch"
        assert client.get("/api/advice").get_json()["advice"] is None

    def test_advice_is_logged(self, system):
        system._on_advice(_advice())
        logs, _ = system.get_logs()
        assert logs[-1]["level"] == "danger"
        assert system.posture_log.query("web", kind="advice")[0].advice_type == "chronic_slouch"


class TestLogs:
    def test_since(self, client, system):
        for i in range(3):
            system._add_log("info", f"msg {i}")
        data = client.get("/api/logs?since=1").get_json()
        assert [entry["message"] for entry in data["logs"]] == ["msg 1", "msg 2"]
        assert data["total"] == 3

    def test_ring_buffer(self, system):
        for i in range(WebDetectionSystem.MAX_LOG_ENTRIES + 10):
            system._add_log("info", str(i))
        logs, total = system.get_logs()
        assert total == WebDetectionSystem.MAX_LOG_ENTRIES
        assert logs[0]["message"] == "10"


def _wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        assert time.monotonic() < deadline, "timed out"
        time.sleep(0.01)


def _tick_now(loop):
    """手动执行一次采样；后台线程正在推理时稍后重试"""
    deadline = time.monotonic() + 5.0
    while True:
        result = loop.tick()
        if result is not None:
            return result
        assert time.monotonic() < deadline, "timed out"
        time.sleep(0.01)


@pytest.fixture
def slow_system(system):
    """采样周期 60 秒：启动后只有第一次采样会立即执行"""
    system.config["interval_sec"] = 60.0
    system.start()
    _wait_until(lambda: system.analyzer.state.total_work_seconds > 0)
    return system


class TestConfig:
    def test_update_config_when_idle(self, client, system):
        resp = client.post("/api/config", json={"interval_sec": 3.0, "min_confidence": 0.5})
        data = resp.get_json()
        assert data["success"] is True
        assert data["config"]["interval_sec"] == 3.0
        assert system.renderer.min_confidence == 0.5
        assert system.config["advice_interval_sec"] == 45.0

    def test_interval_change_keeps_increment_during_session(self, client, slow_system):
        client.post("/api/config", json={"interval_sec": 10.0, "advice_interval_sec": 5.0})

        state = slow_system.analyzer.state
        before = state.total_work_seconds
        _tick_now(slow_system.loop)

        assert slow_system.loop.interval == 60.0
        assert state.total_work_seconds - before == 60.0
        assert slow_system.analyzer.advice_interval == 45.0

    def test_interval_applies_on_restart(self, client, slow_system):
        client.post("/api/config", json={"interval_sec": 10.0, "advice_interval_sec": 30.0})
        slow_system.stop()
        slow_system.start()

        assert slow_system.loop.interval == 10.0
        assert slow_system.analyzer.tick_seconds == 10.0
        assert slow_system.analyzer.advice_interval == 30.0
        _wait_until(lambda: slow_system.analyzer.state.total_work_seconds > 0)
        assert slow_system.analyzer.state.total_work_seconds == 10.0


class TestSummaryLocking:
    def test_get_data_waits_for_state_lock(self, slow_system):
        results = []
        reader = threading.Thread(target=lambda: results.append(slow_system.get_data()))

        slow_system.loop._state_lock.acquire()
        try:
            reader.start()
            reader.join(timeout=0.1)
            assert reader.is_alive()
        finally:
            slow_system.loop._state_lock.release()
        reader.join(timeout=5.0)

        assert results[0]["summary"]["total_work_seconds"] == 60.0


class TestRecommendations:
    def test_recommendations(self, client, system):
        for _ in range(6):
            system.posture_log.record_verdict("web", make_pose_verdict("slouching"))
        data = client.get("/api/recommendations").get_json()
        assert data["recommendations"]["has_recommendations"] is True
        assert data["alert"]["severity"] == "critical"

    def test_other_user_has_no_data(self, client, system):
        system.posture_log.record_verdict("web", make_pose_verdict("slouching"))
        data = client.get("/api/recommendations?user=someone").get_json()
        assert data["recommendations"]["has_recommendations"] is False
        assert data["alert"] is None


class TestVideoFeed:
    def test_not_running_returns_empty_stream(self, client):
        resp = client.get("/video_feed")
        assert resp.status_code == 200
        assert resp.mimetype == "multipart/x-mixed-replace"
        assert resp.data == b""
