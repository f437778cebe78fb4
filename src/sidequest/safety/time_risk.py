# time_risk.py
# Time-of-day risk model. Pure function of a timestamp.

from datetime import datetime
from typing import Optional

from sidequest.safety.models import TimeRiskAssessment

EXTRA_CAUTION = "Exercise extra caution during these hours"


def assess_time_risk(when: Optional[datetime] = None) -> TimeRiskAssessment:
    """
    Risk contribution of the local hour and weekday.

    Night is before 06:00 or after 22:59, late night before 04:00.
    Weekend nights add half a point on top.

    Args:
        when: Timestamp to assess; defaults to now.

    Returns:
        TimeRiskAssessment with the accumulated level and its factors.
    """
    when = when or datetime.now()
    hour = when.hour
    is_weekend = when.weekday() >= 5

    is_night = hour < 6 or hour > 22
    # hour > 23 never holds; late night is in practice 00:00-03:59
    is_late_night = hour < 4 or hour > 23

    risk_level = 0.0
    factors = []
    if is_night:
        risk_level += 1
        factors.append("Night time hours")
    if is_late_night:
        risk_level += 1
        factors.append("Late night hours")
    if is_weekend and is_night:
        risk_level += 0.5
        factors.append("Weekend night")

    return TimeRiskAssessment(
        is_night=is_night,
        is_late_night=is_late_night,
        is_weekend=is_weekend,
        risk_level=risk_level,
        factors=factors,
        recommendation=EXTRA_CAUTION if risk_level > 1.5 else None,
    )
