"""
MES Dashboard Auth — Login route
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.errors import AuthFailure

from .models import get_user_directory

logger = logging.getLogger("auth.routes")


def register_auth_routes(app: FastAPI):

    @app.post("/api/login")
    async def api_login(request: Request):
        """One-shot credential check. No session or token is issued."""
        try:
            data = await request.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        try:
            user = get_user_directory().authenticate(
                data.get("username"), data.get("password"), data.get("role")
            )
        except AuthFailure as e:
            return JSONResponse({"error": e.message}, status_code=401)
        return user

    logger.info("[Auth] Routes registered")
