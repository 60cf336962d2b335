"""Shared FastAPI dependencies."""

from fastapi import Request

from liverelay.relay.registry import SessionRegistry
from liverelay.services.schedule import ScheduleClient


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def get_schedule(request: Request) -> ScheduleClient:
    return request.app.state.schedule
