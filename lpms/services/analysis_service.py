"""
Reserve project analytics — per-bucket status counts.

One grouped query returns rows of (bucket, status, count); aggregate_buckets()
folds them into:

    [{"bucket": "2026", "total": 5,
      "data": [{"status": "entered_db", "count": 3},
               {"status": "early_plan", "count": 2}]}, ...]

Buckets keep first-encounter order. The query sorts by bucket then status,
so the output is deterministic. No bucket appears that is absent from the rows.
"""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import extract, func, select

from lpms.models import db
from lpms.models.reserve import ReserveProject
from lpms.services.helpers.transaction import reading
from lpms.services.reserve_params import AnalysisFilter

logger = logging.getLogger(__name__)

UNSPECIFIED_BUCKET = "unspecified"

_COLUMN_BUCKETS = {
    "level": ReserveProject.level,
    "project_type": ReserveProject.project_type,
    "construct_subject": ReserveProject.construct_subject,
}


def aggregate_buckets(rows: Iterable) -> list[dict]:
    """Group (bucket, status, count) rows into bucket summaries."""
    buckets: dict[str, dict] = {}
    for bucket, status, count in rows:
        entry = buckets.get(bucket)
        if entry is None:
            entry = buckets[bucket] = {"bucket": bucket, "total": 0, "data": []}
        entry["data"].append({"status": status, "count": int(count)})
        entry["total"] += int(count)
    return list(buckets.values())


def _bucket_columns(group_by: str) -> list:
    if group_by == "year":
        return [extract("year", ReserveProject.created_at).label("year")]
    if group_by == "month":
        return [
            extract("year", ReserveProject.created_at).label("year"),
            extract("month", ReserveProject.created_at).label("month"),
        ]
    return [_COLUMN_BUCKETS[group_by].label(group_by)]


def _bucket_label(group_by: str, parts) -> str:
    if group_by == "year":
        return f"{int(parts[0]):04d}"
    if group_by == "month":
        return f"{int(parts[0]):04d}-{int(parts[1]):02d}"
    return parts[0] if parts[0] else UNSPECIFIED_BUCKET


def grouped_counts(filters: AnalysisFilter) -> list[tuple[str, str, int]]:
    """Run the grouped query. Returns (bucket, status, count) tuples."""
    bucket_cols = _bucket_columns(filters.group_by)
    stmt = (
        select(*bucket_cols, ReserveProject.status, func.count(ReserveProject.id))
        .group_by(*bucket_cols, ReserveProject.status)
        .order_by(*bucket_cols, ReserveProject.status)
    )
    if filters.level:
        stmt = stmt.where(ReserveProject.level == filters.level)
    if filters.project_type:
        stmt = stmt.where(ReserveProject.project_type == filters.project_type)
    if filters.construct_subject:
        stmt = stmt.where(ReserveProject.construct_subject == filters.construct_subject)
    if filters.created_from:
        stmt = stmt.where(ReserveProject.created_at >= filters.created_from)
    if filters.created_to:
        stmt = stmt.where(ReserveProject.created_at <= filters.created_to)

    width = len(bucket_cols)
    with reading("data_analysis", group_by=filters.group_by):
        result = db.session.execute(stmt).all()
    return [
        (_bucket_label(filters.group_by, row[:width]), row[width], row[width + 1])
        for row in result
    ]


def data_analysis(filters: AnalysisFilter) -> list[dict]:
    rows = grouped_counts(filters)
    result = aggregate_buckets(rows)
    logger.debug("Data analysis group_by=%s buckets=%d", filters.group_by, len(result))
    return result
