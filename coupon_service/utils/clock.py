"""
시간 유틸리티

DB에는 타임존 없는 UTC 시각을 저장합니다.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """현재 UTC 시각 (naive)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """타임존 정보가 있으면 UTC로 변환 후 제거"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
