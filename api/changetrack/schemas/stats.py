"""Dashboard statistics and analytics schemas."""
from datetime import datetime
from typing import List
from pydantic import BaseModel


class ChangeManagerStats(BaseModel):
    total: int
    completed: int
    in_progress: int
    pending: int
    no_applications: int


class ApplicationOwnerStats(BaseModel):
    pending: int
    completed_today: int
    total: int


class AnalyticsOverview(BaseModel):
    total_requests: int
    completed_requests: int
    in_progress_requests: int
    pending_requests: int
    no_application_requests: int
    success_rate: float
    avg_completion_hours: float


class TrendPoint(BaseModel):
    date: str
    created: int
    completed: int
    in_progress: int
    pending: int


class ChangeTypeCount(BaseModel):
    change_type: str
    count: int


class ApplicationMetrics(BaseModel):
    name: str
    total_validations: int
    completed_validations: int
    pre_completed: int
    post_completed: int
    completion_rate: float


class AnalyticsResponse(BaseModel):
    range: str
    since: datetime
    overview: AnalyticsOverview
    trends: List[TrendPoint]
    change_type_distribution: List[ChangeTypeCount]
    application_metrics: List[ApplicationMetrics]
