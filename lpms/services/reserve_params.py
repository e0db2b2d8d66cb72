"""
Typed inputs for the reserve lifecycle services.

Blueprints build these from request data; services accept nothing else.
Each ``from_payload`` / ``from_args`` validates and raises
InvalidArgumentError with a field-level ``details`` entry.

ReserveUpdate is a partial update: ``present`` lists the fields the caller
actually sent. A present field set to None clears the column; an absent
field is left untouched.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from datetime import datetime

from lpms.core.exceptions import InvalidArgumentError
from lpms.models.reserve import ARTIFACT_SLOTS, MUTABLE_FIELDS, RESERVE_STATUSES
from lpms.utils.helpers import parse_bool_input, parse_datetime_input

_MAX_LENGTH = {
    "name": 200,
    "level": 100,
    "project_type": 100,
    "construct_subject": 100,
    "address": 300,
    "contact": 100,
    "phone": 50,
    "site_photo": 64,
    "upload_cad_id": 64,
}

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

ANALYSIS_GROUP_BY = ("year", "month", "level", "project_type", "construct_subject")


def _invalid(field_name: str, message: str) -> InvalidArgumentError:
    return InvalidArgumentError(f"{field_name}: {message}", {field_name: message})


def _clean_value(name: str, value):
    """Validate one mutable field. Returns the normalised value."""
    if name == "invest_detail":
        if value is None or isinstance(value, (dict, list)):
            return value
        raise _invalid(name, "must be an object or a list")

    if value is None:
        return None
    if not isinstance(value, str):
        raise _invalid(name, "must be a string")
    value = value.strip()
    if name in ARTIFACT_SLOTS and not value:
        return None
    limit = _MAX_LENGTH.get(name)
    if limit and len(value) > limit:
        raise _invalid(name, f"must be ≤ {limit} characters")
    return value


def encode_invest_detail(value) -> str | None:
    return json.dumps(value, ensure_ascii=False) if value is not None else None


@dataclass
class ReserveCreate:
    name: str
    level: str | None = None
    project_type: str | None = None
    construct_subject: str | None = None
    address: str | None = None
    contact: str | None = None
    phone: str | None = None
    description: str | None = None
    invest_detail: dict | list | None = None
    site_photo: str | None = None
    upload_cad_id: str | None = None

    @classmethod
    def from_payload(cls, data: dict) -> "ReserveCreate":
        if not isinstance(data, dict):
            raise InvalidArgumentError("Request body must be a JSON object")
        if "status" in data:
            raise _invalid("status", "is assigned by the lifecycle and cannot be set")
        values = {name: _clean_value(name, data.get(name)) for name in MUTABLE_FIELDS}
        if not values["name"]:
            raise _invalid("name", "is required")
        return cls(**values)

    def artifact_refs(self) -> dict:
        return {slot: getattr(self, slot) for slot in ARTIFACT_SLOTS}

    def column_values(self) -> dict:
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values["invest_detail"] = encode_invest_detail(self.invest_detail)
        return values


@dataclass
class ReserveUpdate:
    name: str | None = None
    level: str | None = None
    project_type: str | None = None
    construct_subject: str | None = None
    address: str | None = None
    contact: str | None = None
    phone: str | None = None
    description: str | None = None
    invest_detail: dict | list | None = None
    site_photo: str | None = None
    upload_cad_id: str | None = None
    present: frozenset = field(default_factory=frozenset)

    @classmethod
    def from_payload(cls, data: dict) -> "ReserveUpdate":
        if not isinstance(data, dict):
            raise InvalidArgumentError("Request body must be a JSON object")
        if "status" in data:
            raise _invalid("status", "can only change through lifecycle transitions")
        unknown = sorted(set(data) - set(MUTABLE_FIELDS))
        if unknown:
            raise InvalidArgumentError(
                f"Unknown or immutable fields: {', '.join(unknown)}",
                {"fields": unknown},
            )
        present = frozenset(data)
        values = {name: _clean_value(name, data[name]) for name in present}
        if "name" in present and not values["name"]:
            raise _invalid("name", "cannot be empty")
        return cls(present=present, **values)

    def changes(self) -> dict:
        """Column → value for every field the caller sent."""
        changes = {name: getattr(self, name) for name in MUTABLE_FIELDS if name in self.present}
        if "invest_detail" in changes:
            changes["invest_detail"] = encode_invest_detail(changes["invest_detail"])
        return changes

    def artifact_refs(self) -> dict:
        return {slot: getattr(self, slot) for slot in ARTIFACT_SLOTS if slot in self.present}


@dataclass(frozen=True)
class SubmissionFlags:
    is_case_finish: bool = False
    is_research: bool = False

    @classmethod
    def from_payload(cls, data: dict | None) -> "SubmissionFlags":
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise InvalidArgumentError("Request body must be a JSON object")
        try:
            return cls(
                is_case_finish=parse_bool_input(data.get("is_case_finish")),
                is_research=parse_bool_input(data.get("is_research")),
            )
        except ValueError as exc:
            raise InvalidArgumentError(str(exc)) from exc


def _parse_range(args) -> tuple[datetime | None, datetime | None]:
    try:
        created_from = parse_datetime_input(args.get("created_from"))
        created_to = parse_datetime_input(args.get("created_to"))
    except ValueError as exc:
        raise InvalidArgumentError(str(exc)) from exc
    if created_from and created_to and created_from > created_to:
        raise _invalid("created_from", "must not be after created_to")
    return created_from, created_to


@dataclass(frozen=True)
class ReserveFilter:
    name: str | None = None
    level: str | None = None
    project_type: str | None = None
    construct_subject: str | None = None
    status: str | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None

    @classmethod
    def from_args(cls, args) -> "ReserveFilter":
        status = args.get("status") or None
        if status and status not in RESERVE_STATUSES:
            raise _invalid("status", f"must be one of: {', '.join(RESERVE_STATUSES)}")
        created_from, created_to = _parse_range(args)
        return cls(
            name=(args.get("name") or "").strip() or None,
            level=args.get("level") or None,
            project_type=args.get("project_type") or None,
            construct_subject=args.get("construct_subject") or None,
            status=status,
            created_from=created_from,
            created_to=created_to,
        )


@dataclass(frozen=True)
class PageInfo:
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @classmethod
    def from_args(cls, args) -> "PageInfo":
        try:
            page = int(args.get("page") or 1)
            page_size = int(args.get("page_size") or DEFAULT_PAGE_SIZE)
        except (TypeError, ValueError) as exc:
            raise InvalidArgumentError("page and page_size must be integers") from exc
        if page < 1:
            raise _invalid("page", "must be ≥ 1")
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise _invalid("page_size", f"must be between 1 and {MAX_PAGE_SIZE}")
        return cls(page=page, page_size=page_size)


@dataclass(frozen=True)
class AnalysisFilter:
    group_by: str
    level: str | None = None
    project_type: str | None = None
    construct_subject: str | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None

    @classmethod
    def from_args(cls, args) -> "AnalysisFilter":
        group_by = (args.get("group_by") or "").strip()
        if not group_by:
            raise _invalid("group_by", "is required")
        if group_by not in ANALYSIS_GROUP_BY:
            raise _invalid("group_by", f"must be one of: {', '.join(ANALYSIS_GROUP_BY)}")
        created_from, created_to = _parse_range(args)
        return cls(
            group_by=group_by,
            level=args.get("level") or None,
            project_type=args.get("project_type") or None,
            construct_subject=args.get("construct_subject") or None,
            created_from=created_from,
            created_to=created_to,
        )
