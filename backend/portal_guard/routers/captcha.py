from fastapi import APIRouter, Depends, Request

from portal_guard.core.limiter import client_ip, limiter
from portal_guard.core.settings import get_settings
from portal_guard.dependencies import get_defense
from portal_guard.models import ChallengeAnswer, ChallengeResponse, ChallengeVerdict
from portal_guard.security.defense import BotDefense
from portal_guard.security.errors import ChallengeError

router = APIRouter(prefix="/captcha", tags=["captcha"])

_settings = get_settings()


@router.get("/challenge", response_model=ChallengeResponse)
@limiter.limit(_settings.rate_limit_captcha)
def issue_challenge(request: Request, defense: BotDefense = Depends(get_defense)) -> ChallengeResponse:
    signals = defense.signals_for(client_ip(request), request.headers.get("user-agent"))
    issued = defense.request_challenge(signals)
    return ChallengeResponse(challenge_id=issued.id, question=issued.question, difficulty=issued.difficulty)


@router.post("/verify", response_model=ChallengeVerdict)
@limiter.limit(_settings.rate_limit_captcha)
def verify_challenge(
    request: Request,
    payload: ChallengeAnswer,
    defense: BotDefense = Depends(get_defense),
) -> ChallengeVerdict:
    # One response for unknown, expired and wrong answers alike.
    if not defense.submit_challenge_answer(payload.challenge_id, str(payload.answer), ip=client_ip(request)):
        raise ChallengeError()
    return ChallengeVerdict(valid=True)
