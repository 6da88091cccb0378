"""
Authentication routes: bearer token login.
"""
import logging

from fastapi import APIRouter, Depends, Request

from tdms.auth import authenticate_user, issue_token
from tdms.dependencies import json_response, read_json, require_auth

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login")
async def login(request: Request):
    """Exchange email and password for a bearer token."""
    body = await read_json(request)
    user, error = authenticate_user(body.get('email'), body.get('password'))
    if error:
        logger.info(f"Rejected login for {body.get('email')}: {error}")
        return json_response({"message": error}, status_code=400)

    logger.info(f"User {user['user_id']} logged in")
    return json_response({"token": issue_token(user), "user": user})


@router.get("/me")
async def current_user(user: dict = Depends(require_auth)):
    return json_response({"user": user})
