# backend/interview_scoring/routers/deps.py
from fastapi import Request

from ..bootstrap import Services
from ..config import Settings


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
