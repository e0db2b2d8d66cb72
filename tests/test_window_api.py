"""
HTTP contract tests for /api/v1/inspect/window and bearer-token identity.
"""

from lpms.services.jwt_service import generate_access_token

BASE = "/api/v1/inspect/window"

MARCH = {"start_at": "2026-03-01T00:00:00Z", "end_at": "2026-04-01T00:00:00Z"}
APRIL = {"start_at": "2026-04-01T00:00:00Z", "end_at": "2026-05-01T00:00:00Z"}


def _h(user_name):
    return {"X-User-Name": user_name}


class TestWindowSettings:
    def test_get_empty(self, client, alice):
        res = client.get(f"{BASE}/settings", headers=_h("alice"))
        assert res.status_code == 200
        assert res.get_json() == {"windows": [], "is_open": False, "current": None}

    def test_admin_sets_touching_windows(self, client, admin):
        res = client.put(f"{BASE}/setting", json={"windows": [APRIL, MARCH]}, headers=_h(admin.user_name))
        assert res.status_code == 200
        windows = res.get_json()["windows"]
        assert [w["start_at"] for w in windows] == [
            "2026-03-01T00:00:00+00:00",
            "2026-04-01T00:00:00+00:00",
        ]

    def test_non_admin_is_403(self, client, alice):
        res = client.put(f"{BASE}/setting", json={"windows": [MARCH]}, headers=_h("alice"))
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_unknown_user_is_404(self, client):
        res = client.put(f"{BASE}/setting", json={"windows": [MARCH]}, headers=_h("ghost"))
        assert res.status_code == 404

    def test_overlap_is_400(self, client, admin):
        overlapping = {"start_at": "2026-03-15T00:00:00Z", "end_at": "2026-04-15T00:00:00Z"}
        res = client.put(
            f"{BASE}/setting",
            json={"windows": [MARCH, overlapping]},
            headers=_h(admin.user_name),
        )
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_INVALID_WINDOW"

    def test_windows_key_required(self, client, admin):
        res = client.put(f"{BASE}/setting", json={"ranges": []}, headers=_h(admin.user_name))
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_empty_list_closes_gate(self, client, admin, open_window):
        assert client.get(f"{BASE}/settings", headers=_h(admin.user_name)).get_json()["is_open"] is True
        res = client.put(f"{BASE}/setting", json={"windows": []}, headers=_h(admin.user_name))
        assert res.status_code == 200
        assert res.get_json()["is_open"] is False


class TestBearerIdentity:
    def test_token_required_when_auth_enabled(self, app, client, monkeypatch, alice):
        monkeypatch.setitem(app.config, "API_AUTH_ENABLED", "true")

        res = client.get(f"{BASE}/settings", headers=_h("alice"))
        assert res.status_code == 401

        token = generate_access_token("alice")
        res = client.get(f"{BASE}/settings", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 200

    def test_invalid_token(self, app, client, monkeypatch):
        monkeypatch.setitem(app.config, "API_AUTH_ENABLED", "true")
        res = client.get(f"{BASE}/settings", headers={"Authorization": "Bearer not-a-jwt"})
        assert res.status_code == 401
        assert res.get_json()["error"] == "Invalid token"
