import os

from fastapi import HTTPException, Request

# Shared bearer token for write access over HTTP. When unset any non-empty
# bearer token is accepted.
API_TOKEN = os.environ.get("LEDGERKV_API_TOKEN", "")


def verify_token(token: str) -> bool:
    if API_TOKEN:
        return token == API_TOKEN
    return bool(token)


def token_required(request: Request):
    auth: str = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        raise HTTPException(401, "Missing or invalid Authorization header")
    token = auth.split(" ", 1)[1]
    if not verify_token(token):
        raise HTTPException(401, "Invalid bearer token")
