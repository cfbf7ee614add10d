"""
DOZE: Detecting Overnight Zzz from Engagement

Infers sleep and wake times from passive phone-interaction telemetry.
"""

from typing import Any

__all__ = ["SleepTrackingService", "UserPreferences"]


def __getattr__(name: str) -> Any:
    """Lazy load the engine so `import doze` stays cheap."""
    if name == "SleepTrackingService":
        from doze.analysis.service import SleepTrackingService

        return SleepTrackingService
    if name == "UserPreferences":
        from doze.models.preferences import UserPreferences

        return UserPreferences
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
