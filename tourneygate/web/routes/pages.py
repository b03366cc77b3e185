"""Page placeholders for the routes the gate redirects between.

Rendering belongs to the frontend; these only give each gated path a
concrete endpoint.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

router = APIRouter(tags=["pages"])


def _page(title: str) -> HTMLResponse:
    return HTMLResponse(f"<!doctype html><title>{title}</title><main data-page=\"{title}\"></main>")


@router.get("/", response_class=HTMLResponse)
async def home() -> HTMLResponse:
    return _page("home")


@router.get("/login", response_class=HTMLResponse)
async def login_page() -> HTMLResponse:
    return _page("login")


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard_page() -> HTMLResponse:
    return _page("dashboard")


@router.get("/onboarding", response_class=HTMLResponse)
async def onboarding_page() -> HTMLResponse:
    return _page("onboarding")


@router.get("/onboarding/pending", response_class=HTMLResponse)
async def pending_page() -> HTMLResponse:
    return _page("pending")
