"""姿态事件日志，按行追加 JSON 记录，供统计和练习推荐查询"""

import json
import logging
import os
import threading
import time
from typing import List, Optional

from models.data_models import Advice, PostureRecord, Verdict

logger = logging.getLogger(__name__)


class PostureLog:
    """线程安全的 JSON Lines 事件存储"""

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def insert(self, record: PostureRecord) -> None:
        """追加一条记录"""
        line = json.dumps(record.to_dict(), ensure_ascii=False)
        with self._lock:
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")

    def record_verdict(self, user_id: str, verdict: Verdict, timestamp: Optional[float] = None) -> PostureRecord:
        """记录一次采样判定"""
        record = PostureRecord(
            user_id=user_id,
            status=verdict.status,
            severity=verdict.severity.value,
            timestamp=time.time() if timestamp is None else timestamp,
        )
        self.insert(record)
        return record

    def record_advice(self, user_id: str, advice: Advice, timestamp: Optional[float] = None) -> PostureRecord:
        """记录一次已发出的建议"""
        record = PostureRecord(
            user_id=user_id,
            status=advice.type,
            severity=advice.priority,
            timestamp=time.time() if timestamp is None else timestamp,
            kind="advice",
            advice_type=advice.type,
        )
        self.insert(record)
        return record

    def query(
        self,
        user_id: str,
        since: Optional[float] = None,
        limit: Optional[int] = None,
        kind: Optional[str] = "verdict",
    ) -> List[PostureRecord]:
        """
        查询某个用户的记录，按时间倒序。

        Args:
            user_id: 用户标识
            since: 只返回 timestamp >= since 的记录
            limit: 最多返回条数
            kind: "verdict" | "advice"，None 表示全部

        Returns:
            PostureRecord 列表
        """
        records = []
        with self._lock:
            if not os.path.exists(self.path):
                return []
            with open(self.path, "r", encoding="utf-8") as f:
                lines = f.readlines()

        for lineno, line in enumerate(lines, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                record = PostureRecord.from_dict(json.loads(line))
            except (ValueError, KeyError, TypeError):
                logger.warning("跳过损坏的日志行 %s:%d", self.path, lineno)
                continue
            if record.user_id != user_id:
                continue
            if kind is not None and record.kind != kind:
                continue
            if since is not None and record.timestamp < since:
                continue
            records.append(record)

        records.sort(key=lambda r: r.timestamp, reverse=True)
        if limit is not None:
            records = records[:limit]
        return records

    def clear(self) -> None:
        """删除日志文件"""
        with self._lock:
            if os.path.exists(self.path):
                os.remove(self.path)
