"""
Middleware tests — hook order, rate-limit keys and log formatting.
"""

import functools
import json
import logging
import sys

from flask import g

from lpms import create_app, limiter
from lpms.middleware.logging_config import JSONFormatter, ReadableFormatter
from lpms.middleware.rate_limiter import rate_limit_key

lpms_config = sys.modules["lpms.config"]


def _hook_owner(fn):
    if isinstance(fn, functools.partial):
        return getattr(fn.func, "__self__", None) or (fn.args[0] if fn.args else None)
    return getattr(fn, "__self__", None)


def _record(**extra):
    record = logging.LogRecord("lpms.services.reserve_service", logging.INFO,
                               __file__, 1, "refer from %s", ("draft",), None)
    for key, val in extra.items():
        setattr(record, key, val)
    return record


class TestRateLimitKey:
    def test_identity_resolves_before_limiter(self, monkeypatch):
        class LimitedTesting(lpms_config.TestingConfig):
            RATELIMIT_ENABLED = True

        monkeypatch.setitem(lpms_config.config, "limited", LimitedTesting)
        monkeypatch.setattr(limiter, "enabled", limiter.enabled)
        app = create_app("limited")

        hooks = app.before_request_funcs[None]
        names = [getattr(fn, "__name__", "") for fn in hooks]
        limiter_at = [i for i, fn in enumerate(hooks) if _hook_owner(fn) is limiter]
        assert limiter_at
        assert names.index("_resolve_identity") < min(limiter_at)

    def test_keyed_by_caller(self, app):
        with app.test_request_context("/api/v1/reserve/projects"):
            g.user_name = "alice"
            assert rate_limit_key() == "user:alice"

    def test_falls_back_to_remote_addr(self, app):
        with app.test_request_context("/api/v1/health",
                                      environ_base={"REMOTE_ADDR": "10.0.0.7"}):
            g.user_name = None
            assert rate_limit_key() == "10.0.0.7"


class TestLogFormatters:
    def test_json_carries_lifecycle_fields(self):
        entry = json.loads(JSONFormatter().format(
            _record(record_id=42, action="refer", user_name="alice")))
        assert entry["message"] == "refer from draft"
        assert entry["level"] == "INFO"
        assert entry["record_id"] == 42
        assert entry["action"] == "refer"
        assert entry["user_name"] == "alice"
        assert "duration_ms" not in entry

    def test_readable_line(self):
        line = ReadableFormatter().format(
            _record(record_id=42, user_name="alice", duration_ms=12.4))
        assert "<alice> #42 refer from draft" in line
        assert line.endswith("[12ms]")
