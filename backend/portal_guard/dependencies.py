from fastapi import Request

from portal_guard.security.defense import BotDefense


def get_defense(request: Request) -> BotDefense:
    return request.app.state.defense
