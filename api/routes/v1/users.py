"""
api/routes/v1/users.py -- User resource CRUD.

Routes:
  GET    /users        -- list users (requires auth)
  GET    /users/{id}   -- one user (requires auth)
  POST   /users        -- create a user, manual or delegated (public)
  PUT    /users/{id}   -- update name/email/age/role (requires auth)
  DELETE /users/{id}   -- delete (admin only)

POST /users takes a tagged body. kind="manual" requires a password and answers
like /auth/register, with a token. kind="delegated" creates an account that can
only sign in through Google and answers with the bare user record: nobody has
proved they own that email yet, so no credential is handed out.

PUT never touches the password hash: UserUpdate has no password field and
AccountStore.update_account() refuses it.

WARNING: role is caller-controlled. Any client can create an admin through
POST, and any authenticated account can change any user's role through PUT.
Put the router behind require_admin before exposing it to untrusted clients.
"""

from typing import Union

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import AuthResponse, MessageResponse, UserCreate, UserResponse, UserUpdate
from api.routes.v1.auth import token_response
from auth.credentials import register
from auth.dependencies import get_current_account, require_admin
from auth.errors import NotFound
from auth.models import DelegatedRegistration
from auth.store import AccountStore

router = APIRouter()


def _not_found() -> NotFound:
    return NotFound("User not found.")


@router.get("/users", response_model=list[UserResponse], dependencies=[Depends(get_current_account)])
def list_users(request: Request) -> list[UserResponse]:
    store: AccountStore = request.app.state.account_store
    return [UserResponse.from_account(a) for a in store.list_accounts()]


@router.get("/users/{user_id}", response_model=UserResponse, dependencies=[Depends(get_current_account)])
def get_user(request: Request, user_id: int) -> UserResponse:
    store: AccountStore = request.app.state.account_store
    account = store.get_by_id(user_id)
    if account is None:
        raise _not_found()
    return UserResponse.from_account(account)


@router.post("/users", response_model=Union[AuthResponse, UserResponse], status_code=201)
def create_user(request: Request, body: UserCreate) -> JSONResponse:
    """Create a user. Manual users get a token; delegated users get their record only."""
    store: AccountStore = request.app.state.account_store
    registration = body.to_registration()
    account = register(store, registration)
    if isinstance(registration, DelegatedRegistration):
        return JSONResponse(status_code=201, content=UserResponse.from_account(account).model_dump())
    return token_response(request.app.state.tokens, account, status_code=201)


@router.put("/users/{user_id}", response_model=UserResponse, dependencies=[Depends(get_current_account)])
def update_user(request: Request, user_id: int, body: UserUpdate) -> UserResponse:
    """Update profile fields. Only fields present in the body are changed.

    409 if the new email belongs to another account.
    """
    store: AccountStore = request.app.state.account_store
    updates = body.model_dump(exclude_unset=True, exclude_none=True)
    if "role" in updates:
        updates["role"] = updates["role"].value
    updated = store.update_account(user_id, **updates)
    if updated is None:
        raise _not_found()
    return UserResponse.from_account(updated)


@router.delete("/users/{user_id}", response_model=MessageResponse, dependencies=[Depends(require_admin)])
def delete_user(request: Request, user_id: int) -> MessageResponse:
    store: AccountStore = request.app.state.account_store
    if not store.delete_account(user_id):
        raise _not_found()
    return MessageResponse(message="User deleted successfully.")
