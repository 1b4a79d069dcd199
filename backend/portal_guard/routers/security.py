from fastapi import APIRouter, Depends, Request

from portal_guard.core.limiter import client_ip
from portal_guard.dependencies import get_defense
from portal_guard.models import GateResponse
from portal_guard.security.defense import BotDefense

router = APIRouter(prefix="/security", tags=["security"])


@router.get("/gate", response_model=GateResponse)
def gate_status(request: Request, defense: BotDefense = Depends(get_defense)) -> GateResponse:
    """Let the client know its standing, e.g. to show a warning before it gets blocked."""
    return GateResponse(**defense.check_ip_gate(client_ip(request)).to_dict())
