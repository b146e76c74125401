from fastapi import Request

from votechain.config import Settings
from votechain.session import SessionStore


def get_store(request: Request) -> SessionStore:
    return request.app.state.sessions


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
