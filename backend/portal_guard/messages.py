"""User-facing messages for the error codes in ``portal_guard.security.errors``."""

from typing import Dict, Optional

DEFAULT_LANGUAGE = "ar"

MESSAGES: Dict[str, Dict[str, str]] = {
    "invalid_or_expired_captcha": {
        "ar": "رمز التحقق غير صحيح أو منتهي الصلاحية",
        "en": "The verification answer is invalid or has expired.",
    },
    "rate_limit_exceeded": {
        "ar": "تم تجاوز حد الطلبات المسموح - يرجى المحاولة لاحقاً",
        "en": "Too many requests. Please try again later.",
    },
    "ip_blocked": {
        "ar": "تم حظر عنوان IP الخاص بك بسبب نشاط مشبوه",
        "en": "Your address has been blocked due to suspicious activity.",
    },
    "internal_error": {
        "ar": "حدث خطأ داخلي - يرجى المحاولة لاحقاً",
        "en": "An internal error occurred. Please try again later.",
    },
    "message_received": {
        "ar": "تم استلام رسالتك بنجاح",
        "en": "Your message has been received.",
    },
}


def pick_language(accept_language: Optional[str]) -> str:
    for part in (accept_language or "").split(","):
        lang = part.split(";")[0].strip().lower()[:2]
        if lang in ("ar", "en"):
            return lang
    return DEFAULT_LANGUAGE


def message_for(code: str, accept_language: Optional[str] = None) -> str:
    entry = MESSAGES.get(code)
    if entry is None:
        return code
    return entry[pick_language(accept_language)]
