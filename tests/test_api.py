import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from fakes import FakeApiClient, ai_config_payload, insight_payload, overview_payload, settings_payload
from neura_dashboard import session_manager
from neura_dashboard.context import DashboardContext, registry
from neura_dashboard.domain import AuthSession
from neura_dashboard.errors import ApiError, AuthError
from neura_dashboard.main import app as fastapi_app


class FakeAuthService:
    def __init__(self):
        self.signed_out = []
        self.pending_confirmation = False

    def sign_in(self, email, password):
        if password != "secret":
            raise AuthError("Invalid login credentials")
        return AuthSession(access_token="access-1", refresh_token="refresh-1", user_id="u1", email=email)

    def sign_up(self, name, email, password, organization_name):
        if self.pending_confirmation:
            return None
        return AuthSession(access_token="access-1", refresh_token="refresh-1", user_id="u2", email=email)

    def sync_session(self, access_token, refresh_token):
        return AuthSession(access_token=access_token, refresh_token=refresh_token, user_id="u3")

    def oauth_url(self, provider, redirect_to):
        return f"https://auth.example/{provider}?redirect_to={redirect_to}"

    def sign_out(self, access_token=None):
        self.signed_out.append(access_token)

    def refresh(self, refresh_token):
        return None


class TestApi(unittest.TestCase):
    def setUp(self):
        session_manager.use_in_memory_store_for_tests()
        registry.clear()
        self.auth_service = FakeAuthService()
        patcher = patch.object(registry, "auth_service", self.auth_service)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.addCleanup(registry.clear)

        self.backend = FakeApiClient({
            ("GET", "/settings/"): settings_payload(),
            ("GET", "/settings/ai-provider"): ai_config_payload(),
            ("GET", "/api/insights/"): overview_payload(
                insight_payload("w1", "high"),
                insight_payload("ok1", "medium"),
                insight_payload("done1", "high", is_marked_done=True),
            ),
            ("GET", "/api/insights/status"): {"sync_status": "IN_PROGRESS", "sync_step": "IMPORTING"},
        })
        self.sid = session_manager.create_session(AuthSession(access_token="a", refresh_token="r"))
        registry.register(DashboardContext(self.sid, self.auth_service, client=self.backend))
        self.client = TestClient(fastapi_app)
        self.headers = {"X-Session-Id": self.sid}

    def test_requires_session(self):
        resp = self.client.get("/v1/overview")
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["detail"], "Not signed in")

    def test_expired_session_drops_context(self):
        session_manager.delete_session(self.sid)
        resp = self.client.get("/v1/overview", headers=self.headers)
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["detail"], "Session expired")
        self.assertNotIn(self.sid, registry._contexts)

    def test_signin_sets_cookie_and_session(self):
        resp = self.client.post("/v1/auth/signin", json={"email": "owner@acme.test", "password": "secret"})
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["user"], {"id": "u1", "email": "owner@acme.test"})
        self.assertEqual(resp.cookies.get("neura_session"), body["session_id"])
        self.assertIsNotNone(session_manager.get_session(body["session_id"]))

    def test_signin_rejected(self):
        resp = self.client.post("/v1/auth/signin", json={"email": "owner@acme.test", "password": "nope"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["detail"], "Invalid login credentials")

    def test_signup_pending_confirmation(self):
        self.auth_service.pending_confirmation = True
        resp = self.client.post(
            "/v1/auth/signup",
            json={"name": "Ada", "email": "ada@acme.test", "password": "pw", "organizationName": "Acme"},
        )
        self.assertEqual(resp.status_code, 200)
        self.assertIsNone(resp.json()["session_id"])
        self.assertIn("confirm", resp.json()["message"])

    def test_oauth_url(self):
        resp = self.client.get("/v1/auth/oauth/google", params={"redirect_to": "https://app.example/cb"})
        self.assertEqual(resp.json()["url"], "https://auth.example/google?redirect_to=https://app.example/cb")

    def test_signout(self):
        resp = self.client.post("/v1/auth/signout", headers=self.headers)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["redirect"], "/login")
        self.assertEqual(self.auth_service.signed_out, ["a"])
        self.assertIsNone(session_manager.get_session(self.sid))

    def test_overview_groups_insights(self):
        resp = self.client.get("/v1/overview", headers=self.headers)
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertFalse(body["is_loading"])
        self.assertIsNone(body["error"])
        groups = body["groups"]
        self.assertEqual([i["insight_id"] for i in groups["watch"]], ["w1"])
        self.assertEqual([i["insight_id"] for i in groups["ok"]], ["ok1"])
        self.assertEqual([i["insight_id"] for i in groups["resolved"]], ["done1"])

    def test_overview_is_cached_until_refresh(self):
        self.client.get("/v1/overview", headers=self.headers)
        self.client.get("/v1/overview", headers=self.headers)
        self.assertEqual(self.backend.count("GET", "/api/insights/"), 1)
        self.client.get("/v1/overview", params={"refresh": "true"}, headers=self.headers)
        self.assertEqual(self.backend.count("GET", "/api/insights/"), 2)

    def test_backend_error_is_reported_on_resource(self):
        self.backend.replies[("GET", "/api/insights/")] = ApiError("Service down", 503, "Service Unavailable")
        resp = self.client.get("/v1/overview", headers=self.headers)
        self.assertEqual(resp.status_code, 200)
        self.assertIsNone(resp.json()["data"])
        self.assertIsNotNone(resp.json()["error"])

    def test_insights_filters(self):
        self.backend.replies[("GET", "/api/insights/")] = {
            "insights": [
                insight_payload("a", "high"),
                insight_payload("b", "medium"),
                insight_payload("c", "high", is_marked_done=True),
            ],
            "pagination": {"total": 3, "page": 1, "limit": 20, "total_pages": 1},
        }
        resp = self.client.get("/v1/insights", params={"severity": "high", "status": "active"}, headers=self.headers)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([i["insight_id"] for i in resp.json()["data"]["insights"]], ["a"])
        self.assertEqual(self.backend.calls[-1][3], {"page": 1, "limit": 20})

    def test_insights_rejects_bad_paging(self):
        for params in ({"page": 0}, {"limit": 0}, {"limit": -5}, {"limit": 1000}):
            resp = self.client.get("/v1/insights", params=params, headers=self.headers)
            self.assertEqual(resp.status_code, 422, params)
        self.assertEqual(self.backend.count("GET", "/api/insights/"), 0)

    def test_admin_feedback_rejects_bad_paging(self):
        for params in ({"offset": -1}, {"limit": 0}, {"limit": 500}):
            resp = self.client.get("/v1/admin/feedback", params=params, headers=self.headers)
            self.assertEqual(resp.status_code, 422, params)
        self.assertEqual(self.backend.count("GET", "/api/feedback/admin"), 0)

    def test_acknowledge_and_notifications(self):
        self.client.get("/v1/overview", headers=self.headers)
        resp = self.client.post("/v1/insights/w1/acknowledge", headers=self.headers)
        self.assertEqual(resp.json(), {"success": True})
        self.assertIn(("PATCH", "/api/insights/w1", {"is_acknowledged": True}, None), self.backend.calls)

        toasts = self.client.get("/v1/notifications", headers=self.headers).json()["toasts"]
        self.assertEqual([t["message"] for t in toasts], ["Insight acknowledged"])
        self.assertEqual(self.client.get("/v1/notifications", headers=self.headers).json()["toasts"], [])

    def test_feedback(self):
        self.client.get("/v1/overview", headers=self.headers)
        resp = self.client.post(
            "/v1/insights/w1/feedback", json={"is_helpful": True, "comment": "  useful  "}, headers=self.headers
        )
        self.assertEqual(resp.json(), {"success": True})
        payload = self.backend.calls[-1][2]
        self.assertEqual(payload["comment"], "useful")
        self.assertEqual(payload["insight_title"], "Insight w1")

    def test_update_organization_requires_name(self):
        resp = self.client.patch("/v1/settings/organization", json={"name": "  "}, headers=self.headers)
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(resp.json()["field"], "name")

    def test_save_ai_provider_requires_key(self):
        resp = self.client.put(
            "/v1/settings/ai-provider", json={"provider": "openai", "api_key": ""}, headers=self.headers
        )
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(resp.json()["detail"], "API key is required")

    def test_generation_requires_xero(self):
        self.backend.replies[("GET", "/settings/")] = settings_payload(connected=False)
        resp = self.client.post("/v1/generation", json={}, headers=self.headers)
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json()["action"], "connect_xero")
        self.assertEqual(self.backend.count("POST", "/api/insights/trigger"), 0)

    def test_generation_start_and_cancel(self):
        resp = self.client.post("/v1/generation", json={"notify_when_ready": True}, headers=self.headers)
        self.assertEqual(resp.status_code, 202)
        body = resp.json()
        self.assertEqual(len(body["steps"]), 4)
        self.assertTrue(body["notify_when_ready"])
        self.assertEqual(self.backend.count("POST", "/api/insights/trigger"), 1)

        resp = self.client.delete("/v1/generation", headers=self.headers)
        self.assertEqual(resp.status_code, 200)
        registry.get(self.sid).job.join(timeout=5)
        self.assertFalse(registry.get(self.sid).job.is_running)

    def test_generation_trigger_failure(self):
        self.backend.replies[("POST", "/api/insights/trigger")] = ApiError("Backend exploded", 500, "Internal Server Error")
        resp = self.client.post("/v1/generation", json={}, headers=self.headers)
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json()["detail"], "Backend exploded")

    def test_generation_idle_and_notify_without_job(self):
        self.assertEqual(self.client.get("/v1/generation", headers=self.headers).json()["outcome"], "idle")
        self.assertEqual(self.client.post("/v1/generation/notify", headers=self.headers).status_code, 404)

    def test_admin_forbidden(self):
        self.backend.replies[("GET", "/api/admin/dashboard")] = ApiError("Forbidden", 403, "Forbidden")
        resp = self.client.get("/v1/admin/dashboard", headers=self.headers)
        self.assertEqual(resp.status_code, 403)


if __name__ == "__main__":
    unittest.main()
