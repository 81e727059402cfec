from fastapi import Request

from ..core.config import Settings

# Clients are built once in create_app() and kept on app.state


def get_store(request: Request):
    return request.app.state.store


def get_generator(request: Request):
    return request.app.state.generator


def get_provider(request: Request):
    return request.app.state.provider


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
