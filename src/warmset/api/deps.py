"""Request-scoped dependencies."""

from __future__ import annotations

from fastapi import Request

from warmset.runtime import AgentRuntime


def get_runtime(request: Request) -> AgentRuntime:
    return request.app.state.runtime
