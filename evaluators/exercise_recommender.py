"""练习推荐模块，统计最近一段时间的坐姿问题并给出针对性练习"""

from typing import Dict, List, Optional

from models.data_models import PostureRecord

# 统计窗口（秒）
RECENT_WINDOW = 30 * 60
MAX_RECOMMENDATIONS = 5
MIN_RECORDS_FOR_HIGH_CONFIDENCE = 5

ALERT_CRITICAL_PERCENT = 60
ALERT_HIGH_PERCENT = 40

# 问题 -> 推荐练习
EXERCISE_MAP = {
    "slouching": {
        "title": "驼背",
        "exercises": ["背部拉伸", "猫牛式", "背部平板支撑"],
        "priority": "critical",
        "reason": "头部经常前倾",
    },
    "neck_forward": {
        "title": "头部前伸",
        "exercises": ["下巴贴胸", "转头练习", "颈部拉伸"],
        "priority": "high",
        "reason": "颈部位置不正确",
    },
    "narrow_shoulders": {
        "title": "肩膀内扣",
        "exercises": ["扩肩练习", "胸部拉伸", "肩部绕环"],
        "priority": "medium",
        "reason": "双肩过于收紧或前倾",
    },
    "uneven_shoulders": {
        "title": "高低肩",
        "exercises": ["侧向弯腰", "侧平板支撑", "体侧拉伸"],
        "priority": "high",
        "reason": "一侧肩膀明显高于另一侧",
    },
    "eyes_tired": {
        "title": "眼睛疲劳",
        "exercises": ["远眺", "眼球转动", "眨眼放松"],
        "priority": "medium",
        "reason": "眼睛长时间聚焦屏幕",
    },
    "too_close": {
        "title": "离屏幕太近",
        "exercises": ["远眺", "眼球转动", "背部拉伸"],
        "priority": "critical",
        "reason": "您坐得离屏幕太近",
    },
    "general_fatigue": {
        "title": "整体疲劳",
        "exercises": ["踮脚尖", "脚踝绕环", "髋部拉伸"],
        "priority": "medium",
        "reason": "该活动一下促进血液循环了",
    },
}

# 采样判定状态 -> 问题
STATUS_TO_PROBLEM = {
    "slouching_critical": "slouching",
    "slouching": "slouching",
    "slight_slouch": "neck_forward",
    "narrow_shoulders": "narrow_shoulders",
    "uneven_shoulders": "uneven_shoulders",
    "slight_tilt": "uneven_shoulders",
    "too_close": "too_close",
    "slightly_close": "too_close",
    "bit_close": "eyes_tired",
    "eyes_closed": "eyes_tired",
    "yawning": "general_fatigue",
}

EXERCISE_CATEGORIES = {
    "姿势与背部": ["背部拉伸", "猫牛式", "转体", "背部平板支撑", "扩肩练习", "胸部拉伸"],
    "眼睛": ["远眺", "眼球转动", "眨眼放松"],
    "腿部与热身": ["踮脚尖", "脚踝绕环", "髋部拉伸"],
    "颈部与头部": ["下巴贴胸", "转头练习", "颈部拉伸", "肩部绕环", "侧向弯腰"],
}

DEFAULT_CATEGORY = "姿势与背部"

GENERAL_EXERCISES = [
    {"name": "背部拉伸", "category": "姿势与背部", "reason": "日常预防"},
    {"name": "远眺", "category": "眼睛", "reason": "让眼睛休息"},
    {"name": "踮脚尖", "category": "腿部与热身", "reason": "促进血液循环"},
]

_PRIORITY_ORDER = {"critical": 3, "high": 2, "medium": 1}


def analyze_recent_posture(records: List[PostureRecord], now: float, window: float = RECENT_WINDOW) -> dict:
    """
    统计时间窗口内各类坐姿问题出现的频率。

    Args:
        records: 日志记录（任意顺序）
        now: 当前时间戳（秒）
        window: 统计窗口（秒）

    Returns:
        {"problems": [{"type", "frequency", "count"}], "total_records": int,
         "confidence": "low"|"medium"|"high"}
    """
    recent = [r for r in records if r.kind == "verdict" and now - window <= r.timestamp <= now]
    if not recent:
        return {"problems": [], "total_records": 0, "confidence": "low"}

    counts: Dict[str, int] = {}
    for record in recent:
        problem = STATUS_TO_PROBLEM.get(record.status)
        if problem is not None:
            counts[problem] = counts.get(problem, 0) + 1

    total = len(recent)
    problems = [
        {"type": problem, "frequency": round(count / total * 100), "count": count}
        for problem, count in sorted(counts.items(), key=lambda item: item[1], reverse=True)
    ]

    return {
        "problems": problems,
        "total_records": total,
        "confidence": "high" if total >= MIN_RECORDS_FOR_HIGH_CONFIDENCE else "medium",
    }


def generate_recommendations(records: List[PostureRecord], now: float) -> dict:
    """根据最近的坐姿问题生成去重后的练习推荐（最多 5 条）"""
    analysis = analyze_recent_posture(records, now)

    if analysis["confidence"] == "low" or not analysis["problems"]:
        return {
            "has_recommendations": False,
            "message": "开启摄像头 5 分钟以上即可获得个性化练习推荐",
            "general_exercises": list(GENERAL_EXERCISES),
        }

    recommendations = []
    seen = set()
    for problem in analysis["problems"]:
        mapping = EXERCISE_MAP.get(problem["type"])
        if mapping is None:
            continue
        for exercise in mapping["exercises"]:
            if exercise in seen:
                continue
            seen.add(exercise)
            recommendations.append({
                "exercise": exercise,
                "problem": mapping["title"],
                "priority": mapping["priority"],
                "frequency": problem["frequency"],
                "reason": mapping["reason"],
            })

    recommendations.sort(
        key=lambda r: (_PRIORITY_ORDER.get(r["priority"], 0), r["frequency"]),
        reverse=True,
    )

    main_problem = analysis["problems"][0]
    main_mapping = EXERCISE_MAP.get(main_problem["type"], {})

    return {
        "has_recommendations": True,
        "main_problem": {
            "title": main_mapping.get("title", "坐姿问题"),
            "frequency": main_problem["frequency"],
        },
        "recommendations": recommendations[:MAX_RECOMMENDATIONS],
        "analysis_quality": analysis["confidence"],
        "total_records": analysis["total_records"],
        "message": f"基于最近 30 分钟内的 {analysis['total_records']} 次测量",
    }


def should_show_exercise_alert(records: List[PostureRecord], now: float) -> Optional[dict]:
    """某个问题占比超过 60% 时返回 critical 提醒，超过 40% 时返回 high 提醒"""
    analysis = analyze_recent_posture(records, now)
    problems = analysis["problems"]
    if not problems:
        return None

    for problem in problems:
        if problem["frequency"] > ALERT_CRITICAL_PERCENT:
            mapping = EXERCISE_MAP.get(problem["type"], {})
            return {
                "severity": "critical",
                "title": mapping.get("title", "坐姿问题"),
                "message": f"{problem['frequency']}% 的时间！{mapping.get('reason', '需要做些练习')}",
                "exercises": list(mapping.get("exercises", [])),
                "action": "立即纠正",
            }

    for problem in problems:
        if problem["frequency"] > ALERT_HIGH_PERCENT:
            mapping = EXERCISE_MAP.get(problem["type"], {})
            return {
                "severity": "high",
                "title": mapping.get("title", "注意"),
                "message": f"发现问题（{problem['frequency']}% 的时间）",
                "exercises": list(mapping.get("exercises", []))[:2],
                "action": "查看练习",
            }

    return None


def get_exercise_category(exercise_name: str) -> str:
    """查找练习所属类别，找不到时归入姿势与背部"""
    needle = exercise_name.lower()
    for category, exercises in EXERCISE_CATEGORIES.items():
        if any(needle in ex.lower() for ex in exercises):
            return category
    return DEFAULT_CATEGORY
