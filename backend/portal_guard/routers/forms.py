import secrets

from fastapi import APIRouter, Depends, Request, status

from portal_guard.core.limiter import client_ip, limiter
from portal_guard.core.settings import get_settings
from portal_guard.dependencies import get_defense
from portal_guard.messages import message_for
from portal_guard.models import CitizenMessage, MessageReceipt
from portal_guard.security.defense import BotDefense
from portal_guard.security.errors import ChallengeError
from portal_guard.security.honeypot import honeypot_tripped
from portal_guard.security.logger import security_logger as logger

router = APIRouter(prefix="/forms", tags=["forms"])

_settings = get_settings()


def _new_reference() -> str:
    return f"MSG-{secrets.token_hex(6).upper()}"


@router.post("/messages", response_model=MessageReceipt, status_code=status.HTTP_201_CREATED)
@limiter.limit(_settings.rate_limit_form)
def submit_message(
    request: Request,
    payload: CitizenMessage,
    defense: BotDefense = Depends(get_defense),
) -> MessageReceipt:
    ip = client_ip(request)
    text = message_for("message_received", request.headers.get("accept-language"))

    if honeypot_tripped(payload.model_dump()):
        defense.track_failed_attempt(ip, "form_spam")
        logger.warning(f"Honeypot field filled by IP {ip}; returning decoy receipt")
        return MessageReceipt(reference=_new_reference(), message=text)

    if not defense.submit_challenge_answer(payload.captcha_id, str(payload.captcha_answer), ip=ip):
        raise ChallengeError()

    reference = _new_reference()
    logger.info(f"Citizen message {reference} ({payload.message_type}) accepted from IP {ip}")
    return MessageReceipt(reference=reference, message=text)
