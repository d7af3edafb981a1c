"""
Business logic layer.
Services orchestrate data access and engine calls.
"""

from coachboard.services.analytics_service import AnalyticsService, RecordSnapshot

__all__ = ["AnalyticsService", "RecordSnapshot"]
