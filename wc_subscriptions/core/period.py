from datetime import datetime, timedelta
from enum import Enum
from typing import List, Union

from wc_subscriptions.core.exceptions import InvalidPeriod


class PeriodKind(str, Enum):
    MINUTELY = "minutely"
    MONTHLY = "monthly"
    YEARLY = "yearly"


PERIOD_CHOICES: List[str] = [p.value for p in PeriodKind]


def _is_leap(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def _days_in_month(year: int, month: int) -> int:
    return [31, 29 if _is_leap(year) else 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31][month - 1]


def _add_months(dt: datetime, months: int) -> datetime:
    month = int(dt.month - 1 + months)
    year = int(dt.year + month // 12)
    month = int(month % 12 + 1)
    day = min(dt.day, _days_in_month(year, month))
    return dt.replace(year=year, month=month, day=day)


def parse_period(value: Union[str, PeriodKind, None]) -> PeriodKind:
    if isinstance(value, PeriodKind):
        return value
    text = str(value or "").strip().lower()
    try:
        return PeriodKind(text)
    except ValueError:
        raise InvalidPeriod(value) from None


def compute_next_payment(period: Union[str, PeriodKind], now: datetime) -> datetime:
    """
    按订阅周期计算下一次扣款时间。

    月 / 年按日历推算：目标月份没有对应日期时取当月最后一天
    （1 月 31 日 → 2 月 28/29 日；闰年 2 月 29 日 → 次年 2 月 28 日）。
    未知周期抛出 InvalidPeriod，不会回退为 now。
    """
    kind = parse_period(period)
    if kind is PeriodKind.MINUTELY:
        return now + timedelta(minutes=1)
    if kind is PeriodKind.MONTHLY:
        return _add_months(now, 1)
    return _add_months(now, 12)
