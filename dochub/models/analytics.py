"""Analytics snapshot models"""

from typing import List, Literal

from pydantic import Field

from dochub.models.entities import EntityModel, TimeRange, UtcDatetime


class UploadBucket(EntityModel):
    period: str  # Weekday, "Week N" or month label
    uploads: int = 0


class DownloadBucket(EntityModel):
    period: str
    downloads: int = 0


class CourseCount(EntityModel):
    course: str
    documents: int


class DocumentTypeSlice(EntityModel):
    name: str
    value: int
    fill: str  # Chart color


class ProfessorRanking(EntityModel):
    name: str
    course: str  # Comma-joined courses taught within the window
    documents: int


class ActivityItem(EntityModel):
    type: Literal["upload", "download"]
    document: str
    time: str  # Relative label computed at response time
    timestamp: UtcDatetime


class Analytics(EntityModel):
    """Derived usage snapshot for one time window, never persisted"""

    total_documents: int = 0
    # Sum of all-time counters on in-window documents
    total_downloads: int = 0
    # Download events recorded inside the window
    window_downloads: int = 0
    unique_courses: int = 0
    unique_professors: int = 0
    uploads_over_time: List[UploadBucket] = Field(default_factory=list)
    course_distribution: List[CourseCount] = Field(default_factory=list)
    document_types: List[DocumentTypeSlice] = Field(default_factory=list)
    top_professors: List[ProfessorRanking] = Field(default_factory=list)
    download_trends: List[DownloadBucket] = Field(default_factory=list)
    recent_activity: List[ActivityItem] = Field(default_factory=list)
    time_range: TimeRange = TimeRange.MONTH
