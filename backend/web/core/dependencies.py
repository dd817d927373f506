"""FastAPI dependency injection functions."""

from fastapi import FastAPI, Request


async def get_app(request: Request) -> FastAPI:
    """Get FastAPI app instance from request."""
    return request.app
