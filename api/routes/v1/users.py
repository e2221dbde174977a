"""
api/routes/v1/users.py -- User management REST endpoints.

Routes:
  GET    /api/v1/users              -- list users (Admin, SuperAdmin)
  POST   /api/v1/users              -- create user with any role (Admin, SuperAdmin)
  PUT    /api/v1/users/{id}         -- update profile/role (SuperAdmin)
  DELETE /api/v1/users/{id}         -- delete user (SuperAdmin, never self)
  PATCH  /api/v1/users/{id}/status  -- suspend / activate (Admin, SuperAdmin)

Every route requires an access token, but the token only establishes who is
asking. UserService re-reads the requester's role from the directory and
applies auth.policy -- a role claim in the token is never trusted here.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import UserCreate, UserResponse, UserStatusUpdate, UserUpdate
from auth.dependencies import get_current_claims
from auth.models import TokenClaims
from users.service import UserService

router = APIRouter()


def _service(request: Request) -> UserService:
    return request.app.state.user_service


@router.get("/users", response_model=list[UserResponse])
def list_users(request: Request, claims: TokenClaims = Depends(get_current_claims)) -> list[UserResponse]:
    users = _service(request).list_users(claims.sub)
    return [UserResponse.from_public(u) for u in users]


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(
    request: Request,
    body: UserCreate,
    claims: TokenClaims = Depends(get_current_claims),
) -> UserResponse:
    """Create a password account. Unlike sign-up, the caller picks the role."""
    user = _service(request).create_user(
        claims.sub,
        name=body.name,
        email=body.email,
        password=body.password,
        role=body.role,
        phone=body.phone,
    )
    return UserResponse.from_public(user)


@router.put("/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: str,
    body: UserUpdate,
    claims: TokenClaims = Depends(get_current_claims),
) -> UserResponse:
    user = _service(request).update_user(
        claims.sub,
        user_id,
        name=body.name,
        phone=body.phone,
        email=body.email,
        role=body.role,
    )
    return UserResponse.from_public(user)


@router.delete("/users/{user_id}", status_code=204)
def delete_user(request: Request, user_id: str, claims: TokenClaims = Depends(get_current_claims)) -> Response:
    _service(request).delete_user(claims.sub, user_id)
    return Response(status_code=204)


@router.patch("/users/{user_id}/status", response_model=UserResponse)
def update_user_status(
    request: Request,
    user_id: str,
    body: UserStatusUpdate,
    claims: TokenClaims = Depends(get_current_claims),
) -> UserResponse:
    user = _service(request).update_user_status(claims.sub, user_id, body.status)
    return UserResponse.from_public(user)
