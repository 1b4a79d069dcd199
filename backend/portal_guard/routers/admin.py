from fastapi import APIRouter, Depends, HTTPException, Request, status

from portal_guard.core.limiter import limiter
from portal_guard.core.settings import get_settings
from portal_guard.dependencies import get_defense
from portal_guard.models import ProfileSnapshot, SecurityReport
from portal_guard.security import User, require_role
from portal_guard.security.defense import BotDefense

router = APIRouter(prefix="/admin/security", tags=["admin"])

_settings = get_settings()


@router.get("/report", response_model=SecurityReport)
@limiter.limit(_settings.rate_limit_admin)
def security_report(
    request: Request,
    user: User = Depends(require_role("admin")),
    defense: BotDefense = Depends(get_defense),
) -> SecurityReport:
    return SecurityReport(**defense.security_report())


@router.get("/ips/{ip}", response_model=ProfileSnapshot)
@limiter.limit(_settings.rate_limit_admin)
def ip_profile(
    request: Request,
    ip: str,
    user: User = Depends(require_role("admin")),
    defense: BotDefense = Depends(get_defense),
) -> ProfileSnapshot:
    snapshot = defense.profile_snapshot(ip)
    if snapshot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="unknown_ip")
    return ProfileSnapshot(**snapshot)
