"""Read-only API routes over the search index."""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from loguru import logger
from pydantic import BaseModel, Field

from mailpulse.application.ports import SearchFilter
from mailpulse.application.use_cases import ReplyContextResolver
from mailpulse.domain import Category, EmailMessage, NotFound, SessionSnapshot
from mailpulse.infrastructure import get_milvus_client
from mailpulse.infrastructure.container import Container

router = APIRouter()


# ============================================================================
# Response Models
# ============================================================================


class HealthResponse(BaseModel):
    """Health check response with per-account session status."""

    status: str
    timestamp: str
    version: str
    services: dict[str, str] = Field(default_factory=dict)
    accounts: dict[str, SessionSnapshot] = Field(default_factory=dict)
    down_accounts: dict[str, str] = Field(default_factory=dict)


class EmailListResponse(BaseModel):
    emails: list[EmailMessage]
    count: int
    offset: int
    size: int


class SuggestedReplyResponse(BaseModel):
    email_id: str
    reply: str


class StatsResponse(BaseModel):
    total: int
    by_category: dict[str, int]
    by_account: dict[str, int]


# ============================================================================
# Helpers
# ============================================================================


def _container(request: Request) -> Container:
    return request.app.state.container


def _resolver(request: Request) -> ReplyContextResolver:
    if request.app.state.resolver is None:
        request.app.state.resolver = _container(request).build_resolver()
    return request.app.state.resolver


# ============================================================================
# Health
# ============================================================================


@router.get("/health", response_model=HealthResponse, tags=["health"])
def health_check(request: Request) -> HealthResponse:
    """Service health plus the state of every mailbox session."""
    coordinator = request.app.state.coordinator
    accounts: dict[str, SessionSnapshot] = {}
    down: dict[str, str] = {}
    if coordinator is not None:
        accounts = coordinator.snapshots()
        down = dict(coordinator.down_accounts)

    services: dict[str, str] = {}
    container = _container(request)
    if container.settings.index_backend == "milvus":
        try:
            services["milvus"] = get_milvus_client(container.settings).health_check().get("status", "unknown")
        except Exception as e:
            logger.warning(f"Milvus health check failed: {e}")
            services["milvus"] = f"error: {str(e)[:50]}"
    else:
        services["index"] = "memory"

    status = "healthy"
    if down or any(not s.status.is_connected for s in accounts.values()):
        status = "degraded"
    if any(v not in ("healthy", "memory") for v in services.values()):
        status = "degraded"

    return HealthResponse(
        status=status,
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=container.settings.app_version,
        services=services,
        accounts=accounts,
        down_accounts=down,
    )


# ============================================================================
# Emails
# ============================================================================


@router.get("/emails", response_model=EmailListResponse, tags=["emails"])
def list_emails(
    request: Request,
    q: str | None = Query(None, description="Text to match in subject, body or sender"),
    account: str | None = None,
    folder: str | None = None,
    category: str | None = None,
    offset: int = Query(0, ge=0),
    size: int = Query(50, ge=1, le=500),
) -> EmailListResponse:
    cat: Category | None = None
    if category:
        try:
            cat = Category(category)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown category: {category}")

    flt = SearchFilter(query=q, account=account, folder=folder, category=cat, offset=offset, size=size)
    try:
        emails = _container(request).index.search(flt)
    except Exception as e:
        logger.exception(f"Search failed: {e}")
        raise HTTPException(status_code=500, detail="Search failed")
    return EmailListResponse(emails=emails, count=len(emails), offset=offset, size=size)


@router.get("/emails/{email_id}", response_model=EmailMessage, tags=["emails"])
def get_email(request: Request, email_id: str) -> EmailMessage:
    try:
        msg = _container(request).index.get_by_id(email_id)
    except Exception as e:
        logger.exception(f"Lookup failed for {email_id}: {e}")
        raise HTTPException(status_code=500, detail="Lookup failed")
    if msg is None:
        raise HTTPException(status_code=404, detail="Email not found")
    return msg


@router.get("/emails/{email_id}/suggested-reply", response_model=SuggestedReplyResponse, tags=["emails"])
def suggested_reply(request: Request, email_id: str) -> SuggestedReplyResponse:
    try:
        reply = _resolver(request).suggest_reply(email_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Email not found")
    except Exception as e:
        logger.exception(f"Reply suggestion failed for {email_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")
    return SuggestedReplyResponse(email_id=email_id, reply=reply)


# ============================================================================
# Stats
# ============================================================================


@router.get("/stats", response_model=StatsResponse, tags=["stats"])
def stats(request: Request) -> StatsResponse:
    index = _container(request).index
    try:
        return StatsResponse(
            total=index.count(),
            by_category=index.aggregate_by("category"),
            by_account=index.aggregate_by("account"),
        )
    except Exception as e:
        logger.exception(f"Stats query failed: {e}")
        raise HTTPException(status_code=500, detail="Stats unavailable")


@router.get("/config", tags=["config"])
async def get_config(request: Request) -> dict[str, Any]:
    """Current non-sensitive configuration."""
    settings = _container(request).settings
    return {
        "accounts": [a.email for a in settings.email_accounts],
        "sync_days": settings.sync_days,
        "index_backend": settings.index_backend,
        "classifier": settings.classifier,
        "llm_provider": settings.llm_provider,
        "embedding_provider": settings.embedding_provider,
        "embedding_model": settings.embedding_model,
        "notifications": {
            "slack": settings.slack_webhook_url is not None,
            "webhook": bool(settings.webhook_url),
        },
    }
