from __future__ import annotations

from typing import Iterable, Mapping, Optional

# Hidden inputs rendered off-screen on public forms; humans never fill them.
HONEYPOT_FIELDS = ("website", "url", "fax_number")


def honeypot_tripped(form: Mapping[str, object], fields: Optional[Iterable[str]] = None) -> bool:
    for name in fields or HONEYPOT_FIELDS:
        value = form.get(name)
        if value is None:
            continue
        if not isinstance(value, str) or value.strip():
            return True
    return False


__all__ = ["HONEYPOT_FIELDS", "honeypot_tripped"]
