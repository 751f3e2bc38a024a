"""FastAPI dependencies: runtime objects live on ``app.state``."""

from fastapi import Depends, Request

from ..core.config import Settings
from ..core.security import verify_basic_auth
from ..exceptions import AuthenticationError
from ..services.badge import Badge
from ..services.job_store import JobStore
from ..services.trigger_channel import TriggerChannel


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> JobStore:
    return request.app.state.store


def get_channel(request: Request) -> TriggerChannel:
    return request.app.state.channel


def get_badge(request: Request) -> Badge:
    return request.app.state.badge


def require_admin(request: Request, settings: Settings = Depends(get_settings)) -> None:
    """Basic auth for admin endpoints. Open when no admin password is set."""
    if not settings.admin_password:
        return
    if not verify_basic_auth(request.headers.get("Authorization"), settings.admin_password):
        raise AuthenticationError()
