"""Usage analytics computed from document and download-event snapshots

Everything here is a pure function of its inputs and ``now``. Results are
recomputed on every query and never cached. Calendar buckets are UTC.
"""

import calendar
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from dochub.models.analytics import (
    ActivityItem,
    Analytics,
    CourseCount,
    DocumentTypeSlice,
    DownloadBucket,
    ProfessorRanking,
    UploadBucket,
)
from dochub.models.entities import Document, DownloadEvent, TimeRange

WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

TYPE_COLORS = {
    "pdf": "hsl(0, 84%, 60%)",
    "excel": "hsl(142, 71%, 45%)",
    "powerpoint": "hsl(25, 95%, 53%)",
    "python": "hsl(207, 90%, 54%)",
    "java": "hsl(262, 83%, 58%)",
    "other": "hsl(215, 16%, 47%)",
}

TOP_N = 5
RECENT_UPLOADS = 10
RECENT_DOWNLOADS = 10
RECENT_ACTIVITY = 5


def _shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _clamped_date(year: int, month: int, day: int) -> date:
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def _start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def window_start(time_range: TimeRange, now: datetime) -> datetime:
    """First instant included in the analytics window"""
    today = now.astimezone(timezone.utc).date()
    if time_range == TimeRange.WEEK:
        return _start_of_day(today - timedelta(days=7))
    if time_range == TimeRange.MONTH:
        year, month = _shift_month(today.year, today.month, -1)
        return _start_of_day(_clamped_date(year, month, today.day))
    return _start_of_day(_clamped_date(today.year - 1, today.month, today.day))


def _bucket_spans(time_range: TimeRange, now: datetime) -> List[Tuple[str, date, date]]:
    """(label, first day, last day) per bucket, oldest first"""
    today = now.astimezone(timezone.utc).date()
    spans = []
    if time_range == TimeRange.WEEK:
        for i in range(6, -1, -1):
            day = today - timedelta(days=i)
            spans.append((WEEKDAY_LABELS[day.weekday()], day, day))
    elif time_range == TimeRange.MONTH:
        for i in range(3, -1, -1):
            week_end = today - timedelta(days=7 * i)
            spans.append((f"Week {4 - i}", week_end - timedelta(days=6), week_end))
    else:
        for i in range(11, -1, -1):
            year, month = _shift_month(today.year, today.month, -i)
            last_day = calendar.monthrange(year, month)[1]
            spans.append((MONTH_LABELS[month - 1], date(year, month, 1), date(year, month, last_day)))
    return spans


def _bucket_counts(timestamps: Iterable[datetime], time_range: TimeRange, now: datetime) -> List[Tuple[str, int]]:
    spans = _bucket_spans(time_range, now)
    counts = [0] * len(spans)
    for ts in timestamps:
        day = ts.astimezone(timezone.utc).date()
        for index, (_, first, last) in enumerate(spans):
            if first <= day <= last:
                counts[index] += 1
                break
    return [(label, count) for (label, _, _), count in zip(spans, counts)]


def uploads_over_time(documents: Sequence[Document], time_range: TimeRange, now: datetime) -> List[UploadBucket]:
    return [
        UploadBucket(period=label, uploads=count)
        for label, count in _bucket_counts((d.uploaded_at for d in documents), time_range, now)
    ]


def download_trends(events: Sequence[DownloadEvent], time_range: TimeRange, now: datetime) -> List[DownloadBucket]:
    return [
        DownloadBucket(period=label, downloads=count)
        for label, count in _bucket_counts((e.timestamp for e in events), time_range, now)
    ]


def course_distribution(documents: Sequence[Document], limit: int = TOP_N) -> List[CourseCount]:
    """Documents per course, highest first; ties keep collection order"""
    counts: Dict[str, int] = {}
    for doc in documents:
        counts[doc.course] = counts.get(doc.course, 0) + 1
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [CourseCount(course=course, documents=count) for course, count in ranked[:limit]]


def document_type_distribution(documents: Sequence[Document]) -> List[DocumentTypeSlice]:
    counts: Dict[str, int] = {}
    for doc in documents:
        name = doc.file_type.value
        counts[name] = counts.get(name, 0) + 1
    return [
        DocumentTypeSlice(
            name=name[:1].upper() + name[1:],
            value=count,
            fill=TYPE_COLORS.get(name, TYPE_COLORS["other"]),
        )
        for name, count in counts.items()
    ]


def top_professors(documents: Sequence[Document], limit: int = TOP_N) -> List[ProfessorRanking]:
    """Professors by document count with the courses they appear under"""
    # dict keys keep first-seen course order
    courses: Dict[str, Dict[str, None]] = {}
    totals: Dict[str, int] = {}
    for doc in documents:
        courses.setdefault(doc.professor, {})[doc.course] = None
        totals[doc.professor] = totals.get(doc.professor, 0) + 1
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [
        ProfessorRanking(name=name, course=", ".join(courses[name]), documents=count)
        for name, count in ranked[:limit]
    ]


def format_time_ago(timestamp: datetime, now: Optional[datetime] = None) -> str:
    """Human-readable age such as "5m ago", or a short date for older items"""
    now = now or datetime.now(timezone.utc)
    seconds = (now - timestamp).total_seconds()
    minutes = int(seconds // 60)
    hours = int(seconds // 3600)
    days = int(seconds // 86400)

    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days < 7:
        return f"{days}d ago"

    when = timestamp.astimezone(timezone.utc)
    label = f"{MONTH_LABELS[when.month - 1]} {when.day}"
    if when.year != now.astimezone(timezone.utc).year:
        label += f", {when.year}"
    return label


def recent_activity(
    documents: Sequence[Document],
    events: Sequence[DownloadEvent],
    now: datetime,
    titles: Optional[Dict[str, str]] = None,
) -> List[ActivityItem]:
    """Latest uploads and downloads merged, newest first.

    ``documents`` is newest-first and ``events`` oldest-first. Download events
    are resolved to a title through ``titles`` (defaults to ``documents``);
    events that do not resolve are dropped.
    """
    if titles is None:
        titles = {doc.id: doc.title for doc in documents}

    activities = [
        ActivityItem(
            type="upload",
            document=doc.title,
            time=format_time_ago(doc.uploaded_at, now),
            timestamp=doc.uploaded_at,
        )
        for doc in documents[:RECENT_UPLOADS]
    ]
    for event in events[-RECENT_DOWNLOADS:]:
        title = titles.get(event.document_id)
        if title is None:
            continue
        activities.append(
            ActivityItem(
                type="download",
                document=title,
                time=format_time_ago(event.timestamp, now),
                timestamp=event.timestamp,
            )
        )

    activities.sort(key=lambda item: item.timestamp, reverse=True)
    return activities[:RECENT_ACTIVITY]


def compute_analytics(
    documents: Sequence[Document],
    download_events: Sequence[DownloadEvent],
    time_range: Union[TimeRange, str] = TimeRange.MONTH,
    now: Optional[datetime] = None,
) -> Analytics:
    """Build the analytics snapshot for one window.

    ``documents`` must be newest-first and ``download_events`` in append order,
    as the backends return them.
    """
    time_range = TimeRange(time_range)
    now = now or datetime.now(timezone.utc)
    start = window_start(time_range, now)

    in_window_docs = [doc for doc in documents if doc.uploaded_at >= start]
    in_window_events = [event for event in download_events if event.timestamp >= start]

    return Analytics(
        total_documents=len(in_window_docs),
        total_downloads=sum(doc.downloads for doc in in_window_docs),
        window_downloads=len(in_window_events),
        unique_courses=len({doc.course for doc in in_window_docs}),
        unique_professors=len({doc.professor for doc in in_window_docs}),
        uploads_over_time=uploads_over_time(in_window_docs, time_range, now),
        course_distribution=course_distribution(in_window_docs),
        document_types=document_type_distribution(in_window_docs),
        top_professors=top_professors(in_window_docs),
        download_trends=download_trends(in_window_events, time_range, now),
        recent_activity=recent_activity(
            in_window_docs,
            in_window_events,
            now,
            titles={doc.id: doc.title for doc in documents},
        ),
        time_range=time_range,
    )
