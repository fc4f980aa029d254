import httpx
from fastapi import Request


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Application-wide client for fetches back into this service."""
    return request.app.state.http_client
