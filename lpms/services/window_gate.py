"""
Window-period gate for early-plan submission and out-storage inspection.

Design:
    - The configuration is an explicit WindowSettingStore handed to the gate
      at construction; there is no module-level state.
    - Windows are half-open [start_at, end_at). Two windows that merely touch
      (one ends where the next starts) do not overlap.
    - is_open() queries the committed configuration on every call, so a
      change made by an administrator applies to the very next gated call.
    - An empty configuration closes the gate.
    - All datetimes are normalised to aware UTC; naive input is read as UTC.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable

from sqlalchemy import delete, select

from lpms.core.exceptions import ForbiddenError, InvalidWindowConfigError
from lpms.models import db
from lpms.models.reserve import iso_utc
from lpms.models.window import WindowSetting
from lpms.services.helpers.transaction import atomic, reading
from lpms.services.user_directory import Actor

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_moment(value, field: str, index: int) -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    if not value or not isinstance(value, str):
        raise InvalidWindowConfigError(
            f"Window #{index}: '{field}' is required",
            {"index": index, "field": field},
        )
    try:
        # Accept a trailing "Z" as well as explicit offsets.
        return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError as exc:
        raise InvalidWindowConfigError(
            f"Window #{index}: '{field}' is not an ISO-8601 datetime: {value!r}",
            {"index": index, "field": field},
        ) from exc


@dataclass(frozen=True)
class Window:
    start_at: datetime
    end_at: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start_at <= moment < self.end_at

    def overlaps(self, other: "Window") -> bool:
        return self.start_at < other.end_at and other.start_at < self.end_at

    def to_dict(self) -> dict:
        return {"start_at": iso_utc(self.start_at), "end_at": iso_utc(self.end_at)}

    @classmethod
    def from_dict(cls, data, index: int = 0) -> "Window":
        if not isinstance(data, dict):
            raise InvalidWindowConfigError(f"Window #{index} must be an object", {"index": index})
        return cls(
            start_at=_parse_moment(data.get("start_at"), "start_at", index),
            end_at=_parse_moment(data.get("end_at"), "end_at", index),
        )


def validate_windows(windows: Iterable[Window]) -> list[Window]:
    """Return the windows sorted by start. Raises InvalidWindowConfigError on bad input."""
    ordered = sorted(windows, key=lambda w: w.start_at)
    for i, window in enumerate(ordered):
        if window.start_at >= window.end_at:
            raise InvalidWindowConfigError(
                f"Window {window.to_dict()} must start before it ends",
                {"window": window.to_dict()},
            )
        if i and ordered[i - 1].overlaps(window):
            raise InvalidWindowConfigError(
                f"Windows {ordered[i - 1].to_dict()} and {window.to_dict()} overlap",
                {"windows": [ordered[i - 1].to_dict(), window.to_dict()]},
            )
    return ordered


class WindowSettingStore:
    """Committed window configuration, backed by the window_settings table."""

    def load(self) -> list[WindowSetting]:
        return list(
            db.session.execute(
                select(WindowSetting).order_by(WindowSetting.start_at, WindowSetting.id)
            ).scalars()
        )

    def find_open(self, moment: datetime) -> WindowSetting | None:
        return db.session.execute(
            select(WindowSetting)
            .where(WindowSetting.start_at <= moment, WindowSetting.end_at > moment)
            .order_by(WindowSetting.start_at)
            .limit(1)
        ).scalar_one_or_none()

    def replace(self, windows: list[Window], updated_by: str) -> None:
        """Swap the whole configuration inside the caller's transaction."""
        db.session.execute(delete(WindowSetting))
        now = _utcnow()
        for window in windows:
            db.session.add(WindowSetting(
                start_at=window.start_at,
                end_at=window.end_at,
                updated_by=updated_by,
                updated_at=now,
            ))


class WindowGate:
    def __init__(self, store: WindowSettingStore, clock: Callable[[], datetime] = _utcnow) -> None:
        self._store = store
        self._clock = clock

    def now(self) -> datetime:
        return as_utc(self._clock())

    def current_window(self, now: datetime | None = None) -> WindowSetting | None:
        moment = as_utc(now) if now is not None else self.now()
        with reading("window_check"):
            return self._store.find_open(moment)

    def is_open(self, now: datetime | None = None) -> bool:
        return self.current_window(now) is not None

    def get_windows(self) -> dict:
        """GetWindowSettings payload: configured windows plus whether the gate is open now."""
        with reading("get_window_settings"):
            rows = self._store.load()
        current = self.current_window()
        return {
            "windows": [row.to_dict() for row in rows],
            "is_open": current is not None,
            "current": current.to_dict() if current else None,
        }

    def set_windows(self, actor: Actor, windows: list) -> dict:
        """Replace the configuration. Only administrators may do this.

        Args:
            actor:   Resolved caller.
            windows: Window instances or {"start_at", "end_at"} dicts.
        """
        if not actor.is_admin:
            raise ForbiddenError(
                f"User {actor.user_name} may not change window settings",
                {"user_name": actor.user_name},
            )
        if not isinstance(windows, list):
            raise InvalidWindowConfigError("windows must be a list")

        parsed = [w if isinstance(w, Window) else Window.from_dict(w, i) for i, w in enumerate(windows)]
        ordered = validate_windows(parsed)

        with atomic("set_window_settings", user_name=actor.user_name):
            self._store.replace(ordered, actor.user_name)

        logger.info(
            "Window settings replaced count=%d",
            len(ordered),
            extra={"user_name": actor.user_name, "action": "set_window_settings"},
        )
        return self.get_windows()
