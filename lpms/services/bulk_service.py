"""
Bulk delete / bulk submission over a list of reserve project ids.

Consistency contract: fail-fast, no rollback.
  - Ids are processed strictly in the order given, one transaction each.
  - The first failure stops the run and is raised as BulkOperationError
    carrying the failing id, the ids already processed and the cause.
  - Records processed before the failure stay deleted / submitted.
Callers that need all-or-nothing semantics must not rely on these endpoints.
"""

from __future__ import annotations

import logging
from typing import Callable

from lpms.core.exceptions import BulkOperationError, InvalidArgumentError, LpmsError
from lpms.services.reserve_params import SubmissionFlags
from lpms.services.reserve_service import LifecycleEngine

logger = logging.getLogger(__name__)


def parse_ids(raw) -> list[int]:
    """Parse "1,2,3" (or a list of ints / digit strings) into ordered unique ids.

    Raises:
        InvalidArgumentError: empty input, non-integer or non-positive entry,
                              or a duplicated id.
    """
    if raw is None:
        raise InvalidArgumentError("ids is required")
    parts = raw.split(",") if isinstance(raw, str) else list(raw)
    if not parts or all(str(p).strip() == "" for p in parts):
        raise InvalidArgumentError("ids must contain at least one id")

    ids: list[int] = []
    for part in parts:
        text = str(part).strip()
        if isinstance(part, bool) or not (text.isascii() and text.isdecimal()) or int(text) <= 0:
            raise InvalidArgumentError(f"Invalid id {part!r} in ids", {"ids": str(raw)})
        value = int(text)
        if value in ids:
            raise InvalidArgumentError(f"Duplicate id {value} in ids", {"ids": str(raw)})
        ids.append(value)
    return ids


class BulkCoordinator:
    def __init__(self, engine: LifecycleEngine) -> None:
        self._engine = engine

    def _run(self, operation: str, ids: list[int], step: Callable[[int], object]) -> list[int]:
        completed: list[int] = []
        for record_id in ids:
            try:
                step(record_id)
            except LpmsError as exc:
                logger.warning(
                    "%s stopped at id=%s after %d record(s): %s",
                    operation, record_id, len(completed), exc,
                    extra={"record_id": record_id, "action": operation},
                )
                raise BulkOperationError(operation, record_id, completed, exc) from exc
            completed.append(record_id)
        logger.info("%s completed count=%d", operation, len(completed), extra={"action": operation})
        return completed

    def multi_delete(self, actor: str, raw_ids) -> dict:
        ids = parse_ids(raw_ids)
        deleted = self._run("multi_delete", ids, lambda rid: self._engine.delete(actor, rid))
        return {"deleted": deleted}

    def multi_submission(self, actor: str, raw_ids, flags: SubmissionFlags | None = None) -> dict:
        ids = parse_ids(raw_ids)
        submitted = self._run(
            "multi_submission", ids, lambda rid: self._engine.submission(actor, rid, flags)
        )
        return {"submitted": submitted}
