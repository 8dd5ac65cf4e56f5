"""Hand-written doubles shared by the test modules."""

import json
import threading
from typing import Any, Callable, Dict, List, Optional


class DummyResp:
    def __init__(self, payload: Any = None, status_code: int = 200, content_type: str = "application/json",
                 text: Optional[str] = None, reason: str = ""):
        self._payload = payload
        self.status_code = status_code
        self.headers = {"content-type": content_type} if content_type else {}
        self.text = text if text is not None else (json.dumps(payload) if payload is not None else "")
        self.reason = reason

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeHttpSession:
    """Stands in for requests.Session; replies come from a queue or a router function."""

    def __init__(self, responses: Optional[List[Any]] = None, router: Optional[Callable] = None):
        self.responses = list(responses or [])
        self.router = router
        self.calls: List[Dict[str, Any]] = []

    def request(self, method, url, json=None, params=None, headers=None, timeout=None):
        self.calls.append({"method": method, "url": url, "json": json, "params": params, "headers": dict(headers or {})})
        reply = self.router(method, url, json, params) if self.router else self.responses.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeTokenProvider:
    def __init__(self, token: Optional[str] = "token-1", refreshed_token: Optional[str] = "token-2"):
        self.token = token
        self.refreshed_token = refreshed_token
        self.refresh_calls = 0
        self.unauthorized_calls = 0

    def get_token(self):
        return self.token

    def refresh(self):
        self.refresh_calls += 1
        if self.refreshed_token is None:
            return False
        self.token = self.refreshed_token
        return True

    def on_unauthorized(self):
        self.unauthorized_calls += 1


class FakeApiClient:
    """Records calls and returns canned payloads keyed by (method, endpoint)."""

    def __init__(self, replies: Optional[Dict[tuple, Any]] = None):
        self.replies = dict(replies or {})
        self.calls: List[tuple] = []
        self._lock = threading.Lock()

    def request(self, endpoint, method="GET", *, json=None, params=None):
        with self._lock:
            self.calls.append((method, endpoint, json, params))
        reply = self.replies.get((method, endpoint))
        if callable(reply):
            reply = reply()
        if isinstance(reply, Exception):
            raise reply
        return reply if reply is not None else {}

    def get(self, endpoint, **kwargs):
        return self.request(endpoint, "GET", **kwargs)

    def post(self, endpoint, **kwargs):
        return self.request(endpoint, "POST", **kwargs)

    def put(self, endpoint, **kwargs):
        return self.request(endpoint, "PUT", **kwargs)

    def patch(self, endpoint, **kwargs):
        return self.request(endpoint, "PATCH", **kwargs)

    def count(self, method, endpoint):
        with self._lock:
            return sum(1 for call in self.calls if call[0] == method and call[1] == endpoint)


def insight_payload(insight_id="ins-1", severity="high", **overrides):
    data = {
        "insight_id": insight_id,
        "insight_type": "cash_runway",
        "title": f"Insight {insight_id}",
        "severity": severity,
        "confidence_level": "high",
        "summary": "Cash runway is shrinking",
        "why_it_matters": "You may run out of cash",
        "recommended_actions": ["Chase receivables"],
        "supporting_numbers": [{"label": "Runway", "value": "4.2 months"}],
        "generated_at": "2025-01-05T10:00:00Z",
        "is_acknowledged": False,
        "is_marked_done": False,
    }
    data.update(overrides)
    return data


def overview_payload(*insights):
    return {
        "cash_runway": {"current_cash": 120000.0, "monthly_burn_rate": 30000.0, "runway_months": 4.0, "status": "warning"},
        "insights": list(insights) or [insight_payload()],
        "calculated_at": "2025-01-05T10:00:00Z",
    }


def settings_payload(connected=True, name="Acme Ltd"):
    return {
        "email": "owner@acme.test",
        "organization_name": name,
        "xero_integration": {"is_connected": connected, "status": "connected" if connected else "disconnected"},
    }


def ai_config_payload(**overrides):
    data = {
        "active_provider": "openai",
        "validation_status": "valid",
        "available_providers": ["openai", "anthropic"],
        "has_key_configured": True,
    }
    data.update(overrides)
    return data
