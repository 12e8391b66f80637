"""JSON API routes for users, tokens and checks.

The token travels in the ``token`` header. Services raise typed errors;
``server.py`` turns them into ``{"Error": ...}`` responses.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Header, Request
from pydantic import BaseModel

from pingwatch.checks.models import parse_check_fields
from pingwatch.errors import ValidationError
from pingwatch.services import Services

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Request models ───────────────────────────────────────────────────────
# Fields are untyped here; the services validate them.


class CreateUserBody(BaseModel):
    firstname: Any = None
    lastname: Any = None
    phone: Any = None
    password: Any = None
    tosAgreement: Any = None


class UpdateUserBody(BaseModel):
    phone: Any = None
    firstname: Any = None
    lastname: Any = None
    password: Any = None


class CreateTokenBody(BaseModel):
    phone: Any = None
    password: Any = None


class ExtendTokenBody(BaseModel):
    id: Any = None
    extend: Any = None


class CheckBody(BaseModel):
    id: Any = None
    protocol: Any = None
    url: Any = None
    method: Any = None
    successCodes: Any = None
    timeoutSeconds: Any = None


# ── Helper ───────────────────────────────────────────────────────────────


def _services(request: Request) -> Services:
    return request.app.state.services  # type: ignore[no-any-return]


# ── Ping ─────────────────────────────────────────────────────────────────


@router.get("/ping")
def ping() -> dict[str, Any]:
    return {}


# ── Users ────────────────────────────────────────────────────────────────


@router.post("/users")
def create_user(body: CreateUserBody, request: Request) -> dict[str, Any]:
    _services(request).users.create(body.model_dump())
    return {}


@router.get("/users")
def get_user(request: Request, phone: str = "", token: str = Header(default="")) -> dict[str, Any]:
    return _services(request).users.get(phone, token)


@router.put("/users")
def update_user(body: UpdateUserBody, request: Request, token: str = Header(default="")) -> dict[str, Any]:
    _services(request).users.update(body.model_dump(), token)
    return {}


@router.delete("/users")
def delete_user(request: Request, phone: str = "", token: str = Header(default="")) -> dict[str, Any]:
    _services(request).users.delete(phone, token)
    return {}


# ── Tokens ───────────────────────────────────────────────────────────────


@router.post("/tokens")
def create_token(body: CreateTokenBody, request: Request) -> dict[str, Any]:
    return _services(request).authorizer.issue(body.phone, body.password).to_dict()


@router.get("/tokens")
def get_token(request: Request, id: str = "") -> dict[str, Any]:
    return _services(request).authorizer.get(id).to_dict()


@router.put("/tokens")
def extend_token(body: ExtendTokenBody, request: Request) -> dict[str, Any]:
    if body.extend is not True:
        raise ValidationError("Missing required field(s) or field(s) are invalid")
    _services(request).authorizer.extend(body.id)
    return {}


@router.delete("/tokens")
def delete_token(request: Request, id: str = "") -> dict[str, Any]:
    _services(request).authorizer.revoke(id)
    return {}


# ── Checks ───────────────────────────────────────────────────────────────


@router.post("/checks")
def create_check(body: CheckBody, request: Request, token: str = Header(default="")) -> dict[str, Any]:
    services = _services(request)
    fields = body.model_dump(exclude={"id"})
    parse_check_fields(fields, required=True)
    phone = services.authorizer.owner_of(token)
    return services.checks.create(phone, fields).to_dict()


@router.get("/checks/all")
def list_checks(request: Request, phone: str = "", token: str = Header(default="")) -> dict[str, Any]:
    checks = _services(request).checks.list_for_user(phone, token)
    return {"checks": [c.to_dict() for c in checks], "count": len(checks)}


@router.get("/checks")
def get_check(request: Request, id: str = "", token: str = Header(default="")) -> dict[str, Any]:
    return _services(request).checks.get(id, token).to_dict()


@router.put("/checks")
def update_check(body: CheckBody, request: Request, token: str = Header(default="")) -> dict[str, Any]:
    fields = body.model_dump(exclude={"id"}, exclude_none=True)
    return _services(request).checks.update(body.id, token, fields).to_dict()


@router.delete("/checks")
def delete_check(request: Request, id: str = "", token: str = Header(default="")) -> dict[str, Any]:
    _services(request).checks.delete(id, token)
    return {}
