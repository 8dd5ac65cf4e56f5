"""HTTP API for the Neura insights dashboard gateway."""

from dataclasses import asdict
from typing import Any, Optional

from fastapi import APIRouter, Cookie, Depends, Header, HTTPException, Query, Response, status
from pydantic import AliasChoices, BaseModel, Field

from neura_dashboard import session_manager
from neura_dashboard.auth import check_admin_access, fetch_app_user
from neura_dashboard.config import settings
from neura_dashboard.context import DashboardContext, registry
from neura_dashboard.stores.base import CachedResource
from neura_dashboard.stores.insights import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from neura_dashboard.presenters import filter_insights, group_overview_insights, step_timeline
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="neura_dashboard/api")


def current_session_id(
    session_cookie: Optional[str] = Cookie(default=None, alias=settings.session_cookie_name),
    x_session_id: Optional[str] = Header(default=None),
) -> str:
    """Resolve the gateway session from the cookie or the X-Session-Id header."""
    sid = session_cookie or x_session_id
    if not sid:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not signed in")
    if session_manager.get_session(sid) is None:
        logger.debug("Unknown or expired session %s", sid[:8])
        registry.drop(sid)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired")
    return sid


def current_context(session_id: str = Depends(current_session_id)) -> DashboardContext:
    return registry.get(session_id)


def require_admin(ctx: DashboardContext = Depends(current_context)) -> DashboardContext:
    if not check_admin_access(ctx.client):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return ctx


router = APIRouter()


class SignInRequest(BaseModel):
    email: str
    password: str


class SignUpRequest(BaseModel):
    name: str = ""
    email: str
    password: str
    organization_name: str = Field(
        default="", validation_alias=AliasChoices("organization_name", "organizationName")
    )


class SyncSessionRequest(BaseModel):
    access_token: str
    refresh_token: str


class OrganizationRequest(BaseModel):
    name: str


class AIProviderRequest(BaseModel):
    provider: str
    api_key: str
    model: Optional[str] = None


class FeedbackRequest(BaseModel):
    is_helpful: bool
    comment: Optional[str] = None


class GenerationRequest(BaseModel):
    notify_when_ready: bool = False


def _resource(res: CachedResource) -> dict[str, Any]:
    """Serialize a cached resource for the client."""
    data = res.data.model_dump(mode="json") if res.data is not None else None
    return {
        "data": data,
        "is_loading": res.is_loading,
        "last_fetched": res.last_fetched,
        "error": res.error,
    }


def _start_session(response: Response, auth) -> dict[str, Any]:
    sid = session_manager.create_session(auth)
    response.set_cookie(settings.session_cookie_name, sid, httponly=True, samesite="lax")
    return {"success": True, "session_id": sid, "user": {"id": auth.user_id, "email": auth.email}}


@router.post("/auth/signin")
def sign_in(req: SignInRequest, response: Response):
    """Sign in with e-mail and password and open a gateway session."""
    auth = registry.auth_service.sign_in(req.email, req.password)
    logger.info("User signed in", extra={"user_id": auth.user_id})
    return _start_session(response, auth)


@router.post("/auth/signup")
def sign_up(req: SignUpRequest, response: Response):
    """Register a user; no session is opened while e-mail confirmation is pending."""
    auth = registry.auth_service.sign_up(req.name, req.email, req.password, req.organization_name)
    if auth is None:
        return {"success": True, "session_id": None, "message": "Check your email to confirm your account"}
    return _start_session(response, auth)


@router.post("/auth/sync-session")
def sync_session(req: SyncSessionRequest, response: Response):
    """Adopt tokens returned by an OAuth callback."""
    auth = registry.auth_service.sync_session(req.access_token, req.refresh_token)
    return _start_session(response, auth)


@router.get("/auth/oauth/{provider}")
def oauth_url(provider: str, redirect_to: str):
    return {"url": registry.auth_service.oauth_url(provider, redirect_to)}


@router.post("/auth/signout")
def sign_out(response: Response, session_id: str = Depends(current_session_id)):
    auth = session_manager.get_session(session_id)
    registry.auth_service.sign_out(auth.access_token if auth else None)
    session_manager.delete_session(session_id)
    registry.drop(session_id)
    response.delete_cookie(settings.session_cookie_name)
    return {"success": True, "redirect": settings.login_path}


@router.get("/auth/me")
def me(ctx: DashboardContext = Depends(current_context)):
    user = fetch_app_user(ctx.client)
    return {"user": user, "is_admin": bool(user and user.is_admin)}


@router.get("/settings")
def get_settings(refresh: bool = False, ctx: DashboardContext = Depends(current_context)):
    return _resource(ctx.settings.fetch_settings(force_refresh=refresh))


@router.patch("/settings/organization")
def update_organization(req: OrganizationRequest, ctx: DashboardContext = Depends(current_context)):
    ok = ctx.settings.update_org_name(req.name)
    return {"success": ok, "settings": _resource(ctx.settings.resource("settings"))}


@router.get("/settings/ai-provider")
def get_ai_provider(refresh: bool = False, ctx: DashboardContext = Depends(current_context)):
    return _resource(ctx.settings.fetch_ai_config(force_refresh=refresh))


@router.put("/settings/ai-provider")
def save_ai_provider(req: AIProviderRequest, ctx: DashboardContext = Depends(current_context)):
    config = ctx.settings.save_ai_config(req.provider, req.api_key, req.model)
    ctx.toasts.success("Configuration saved successfully", 2000)
    return config


@router.post("/settings/ai-provider/test")
def test_ai_provider(ctx: DashboardContext = Depends(current_context)):
    return ctx.settings.test_ai_connection()


@router.get("/integrations/xero/connect")
def connect_xero(ctx: DashboardContext = Depends(current_context)):
    return ctx.settings.connect_xero()


@router.post("/integrations/xero/disconnect")
def disconnect_xero(ctx: DashboardContext = Depends(current_context)):
    return _resource(ctx.settings.disconnect_xero())


@router.get("/overview")
def get_overview(refresh: bool = False, ctx: DashboardContext = Depends(current_context)):
    """Overview payload plus the insights grouped into watch/ok/resolved."""
    res = ctx.overview.fetch_overview(force_refresh=refresh)
    body = _resource(res)
    groups = group_overview_insights(res.data.insights if res.data else [])
    body["groups"] = {name: [i.model_dump(mode="json") for i in items] for name, items in groups.items()}
    return body


@router.get("/insights")
def list_insights(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    severity: str = "all",
    status_filter: str = Query(default="all", alias="status"),
    refresh: bool = False,
    ctx: DashboardContext = Depends(current_context),
):
    res = ctx.insights.fetch_insights(page, limit, force_refresh=refresh)
    body = _resource(res)
    if res.data is not None:
        body["data"]["insights"] = [
            i.model_dump(mode="json") for i in filter_insights(res.data.insights, severity, status_filter)
        ]
    return body


@router.get("/health-score")
def get_health_score(refresh: bool = False, ctx: DashboardContext = Depends(current_context)):
    return _resource(ctx.health_score.fetch_health_score(force_refresh=refresh))


@router.post("/insights/{insight_id}/acknowledge")
def acknowledge_insight(insight_id: str, ctx: DashboardContext = Depends(current_context)):
    result = ctx.actions.acknowledge(insight_id)
    return {"success": result.ok}


@router.post("/insights/{insight_id}/resolve")
def resolve_insight(insight_id: str, ctx: DashboardContext = Depends(current_context)):
    result = ctx.actions.resolve(insight_id)
    return {"success": result.ok}


@router.post("/insights/{insight_id}/feedback")
def insight_feedback(insight_id: str, req: FeedbackRequest, ctx: DashboardContext = Depends(current_context)):
    return {"success": ctx.actions.submit_feedback(insight_id, req.is_helpful, req.comment)}


def _generation_body(ctx: DashboardContext) -> dict[str, Any]:
    job = ctx.job
    if job is None:
        return {"outcome": "idle", "steps": []}
    body = job.status()
    poller = job.poller
    if poller is not None:
        margin = poller.config.completion_margin_ms
        body["steps"] = [asdict(step) for step in step_timeline(poller.snapshot, poller.trigger_timestamp_ms, margin)]
    return body


@router.post("/generation", status_code=status.HTTP_202_ACCEPTED)
def start_generation(req: GenerationRequest, ctx: DashboardContext = Depends(current_context)):
    """Trigger insight generation and start watching its status."""
    ctx.start_generation(notify_when_ready=req.notify_when_ready)
    return _generation_body(ctx)


@router.get("/generation")
def generation_status(ctx: DashboardContext = Depends(current_context)):
    return _generation_body(ctx)


@router.delete("/generation")
def cancel_generation(ctx: DashboardContext = Depends(current_context)):
    ctx.cancel_generation()
    return _generation_body(ctx)


@router.post("/generation/notify")
def notify_when_ready(ctx: DashboardContext = Depends(current_context)):
    if ctx.job is None:
        raise HTTPException(status_code=404, detail="No generation in progress")
    ctx.job.set_notify_when_ready(True)
    return _generation_body(ctx)


@router.get("/admin/dashboard")
def admin_dashboard(refresh: bool = False, ctx: DashboardContext = Depends(require_admin)):
    return _resource(ctx.admin.fetch_dashboard(force_refresh=refresh))


@router.get("/admin/feedback/summary")
def admin_feedback_summary(refresh: bool = False, ctx: DashboardContext = Depends(require_admin)):
    return _resource(ctx.admin.fetch_feedback_summary(force_refresh=refresh))


@router.get("/admin/feedback")
def admin_feedback(limit: int = Query(default=20, ge=1, le=MAX_PAGE_SIZE), offset: int = Query(default=0, ge=0),
                   refresh: bool = False, ctx: DashboardContext = Depends(require_admin)):
    return _resource(ctx.admin.fetch_feedback_list(limit, offset, force_refresh=refresh))


@router.get("/notifications")
def notifications(ctx: DashboardContext = Depends(current_context)):
    """Drain the toasts queued for this session."""
    return {"toasts": [toast.to_dict() for toast in ctx.toasts.drain()]}
