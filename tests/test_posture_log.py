"""PostureLog 单元测试"""

import json
import logging
import threading

import pytest

from classifiers.face_classifier import make_face_verdict
from classifiers.posture_classifier import make_pose_verdict
from models.data_models import Advice, PostureRecord
from storage.posture_log import PostureLog


@pytest.fixture
def log(tmp_path):
    return PostureLog(str(tmp_path / "logs" / "posture_log.jsonl"))


class TestPostureLog:
    def test_query_missing_file(self, log):
        assert log.query("alice") == []

    def test_record_verdict(self, log):
        record = log.record_verdict("alice", make_pose_verdict("slouching"), timestamp=100.0)
        assert record == PostureRecord("alice", "slouching", "high", 100.0)
        assert log.query("alice") == [record]

    def test_creates_parent_directory(self, log, tmp_path):
        log.record_verdict("alice", make_pose_verdict("perfect"), timestamp=1.0)
        assert (tmp_path / "logs" / "posture_log.jsonl").exists()

    def test_lines_are_json(self, log):
        log.record_verdict("alice", make_face_verdict("too_close"), timestamp=5.0)
        with open(log.path, encoding="utf-8") as f:
            data = json.loads(f.readline())
        assert data["status"] == "too_close"
        assert data["severity"] == "critical"
        assert data["kind"] == "verdict"

    def test_default_timestamp(self, log):
        record = log.record_verdict("alice", make_pose_verdict("perfect"))
        assert record.timestamp > 0

    def test_newest_first_and_limit(self, log):
        for ts in (10.0, 30.0, 20.0):
            log.record_verdict("alice", make_pose_verdict("perfect"), timestamp=ts)
        assert [r.timestamp for r in log.query("alice")] == [30.0, 20.0, 10.0]
        assert [r.timestamp for r in log.query("alice", limit=2)] == [30.0, 20.0]

    def test_since_filter(self, log):
        for ts in (10.0, 20.0, 30.0):
            log.record_verdict("alice", make_pose_verdict("perfect"), timestamp=ts)
        assert [r.timestamp for r in log.query("alice", since=20.0)] == [30.0, 20.0]

    def test_filters_by_user(self, log):
        log.record_verdict("alice", make_pose_verdict("perfect"), timestamp=1.0)
        log.record_verdict("bob", make_pose_verdict("slouching"), timestamp=2.0)
        assert [r.status for r in log.query("bob")] == ["slouching"]

    def test_advice_records_are_separate(self, log):
        advice = Advice("该休息了！", "...", "休息 5 分钟", "pomodoro_break", "medium", True)
        log.record_verdict("alice", make_pose_verdict("perfect"), timestamp=1.0)
        log.record_advice("alice", advice, timestamp=2.0)

        assert [r.kind for r in log.query("alice")] == ["verdict"]
        advices = log.query("alice", kind="advice")
        assert len(advices) == 1
        assert advices[0].advice_type == "pomodoro_break"
        assert advices[0].severity == "medium"
        assert len(log.query("alice", kind=None)) == 2

    def test_corrupt_lines_are_skipped(self, log, caplog):
        log.record_verdict("alice", make_pose_verdict("perfect"), timestamp=1.0)
        with open(log.path, "a", encoding="utf-8") as f:
            f.write("{not json\n")
            f.write(json.dumps({"user_id": "alice"}) + "\n")
            f.write("\n")
        log.record_verdict("alice", make_pose_verdict("slouching"), timestamp=2.0)

        with caplog.at_level(logging.WARNING, logger="storage.posture_log"):
            records = log.query("alice")
        assert [r.status for r in records] == ["slouching", "perfect"]
        assert caplog.text.count("跳过损坏的日志行") == 2

    def test_clear(self, log):
        log.record_verdict("alice", make_pose_verdict("perfect"), timestamp=1.0)
        log.clear()
        assert log.query("alice") == []
        log.clear()

    def test_concurrent_writes(self, log):
        def write(user):
            for i in range(50):
                log.record_verdict(user, make_pose_verdict("perfect"), timestamp=float(i))

        threads = [threading.Thread(target=write, args=(f"user{n}",)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        for n in range(4):
            assert len(log.query(f"user{n}")) == 50


class TestPostureRecord:
    def test_from_dict_defaults(self):
        record = PostureRecord.from_dict({"user_id": "a", "status": "perfect", "timestamp": "3"})
        assert record.timestamp == 3.0
        assert record.kind == "verdict"
        assert record.severity == "none"
        assert record.advice_type is None
