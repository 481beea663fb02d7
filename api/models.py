"""
API request and response models for Libris REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
books/models.py, which own the internal domain representation. Route handlers
map between the two.

Separation of concerns: domain dataclasses = domain truth; api/ models = API contract.
"""

from datetime import date
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, RootModel

from auth.models import Account, DelegatedRegistration, ManualRegistration, RegistrationRequest, Role
from books.models import Book

# bcrypt uses at most 72 bytes of input; longer passwords are refused up front.
_Password = Annotated[str, Field(min_length=8, max_length=72)]


# ---------------------------------------------------------------------------
# Shared envelopes
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool = True
    message: str


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    name is optional; when omitted the local part of the email is used.

    WARNING: role is taken from the body as given, so any anonymous caller can
    register an admin. Drop the field or gate the route before going public.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    email: EmailStr
    password: _Password
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    role: Role = Role.user

    def to_registration(self) -> ManualRegistration:
        return ManualRegistration(
            email=self.email,
            password=self.password,
            name=self.name or self.email.split("@", 1)[0],
            role=self.role.value,
        )


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr
    password: str = Field(min_length=1, max_length=72)


class AccountSummary(BaseModel):
    """The public face of an account. Never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    name: str
    role: str

    @classmethod
    def from_account(cls, account: Account) -> "AccountSummary":
        return cls(id=account.id, email=account.email, name=account.name, role=account.role)


class AuthResponse(BaseModel):
    """Response for register, login, and user creation: a fresh token plus who it is for."""

    model_config = ConfigDict(frozen=True)

    token: str
    token_type: str = "bearer"
    expires_in: int
    user: AccountSummary


# ---------------------------------------------------------------------------
# Users
#
# POST /users takes a tagged union. "kind" selects the rule set: a manual user
# must supply a password, a delegated user must not.
# ---------------------------------------------------------------------------


class _UserFields(BaseModel):
    # role is caller-chosen; see the warning in api/routes/v1/users.py.
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: str = Field(min_length=3, max_length=255)
    email: EmailStr
    age: int = Field(ge=1, le=150)
    role: Role = Role.user


class ManualUserCreate(_UserFields):
    kind: Literal["manual"]
    password: _Password

    def to_registration(self) -> RegistrationRequest:
        return ManualRegistration(
            email=self.email,
            password=self.password,
            name=self.name,
            age=self.age,
            role=self.role.value,
        )


class DelegatedUserCreate(_UserFields):
    kind: Literal["delegated"]

    def to_registration(self) -> RegistrationRequest:
        return DelegatedRegistration(email=self.email, name=self.name, age=self.age, role=self.role.value)


class UserCreate(RootModel[Annotated[Union[ManualUserCreate, DelegatedUserCreate], Field(discriminator="kind")]]):
    """Request body for POST /api/v1/users, dispatched on the "kind" tag."""

    def to_registration(self) -> RegistrationRequest:
        return self.root.to_registration()


class UserUpdate(BaseModel):
    """Request body for PUT /api/v1/users/{id}.

    extra="forbid" makes a stray password field a 400 rather than a silent
    no-op; passwords are not changed through this path.

    WARNING: role is writable by any authenticated caller, for any user,
    including their own account. Only require_admin on the route prevents
    privilege escalation.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: Optional[str] = Field(default=None, min_length=3, max_length=255)
    email: Optional[EmailStr] = None
    age: Optional[int] = Field(default=None, ge=1, le=150)
    role: Optional[Role] = None


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    name: str
    age: Optional[int]
    role: str
    created_at: str

    @classmethod
    def from_account(cls, account: Account) -> "UserResponse":
        return cls(
            id=account.id,
            email=account.email,
            name=account.name,
            age=account.age,
            role=account.role,
            created_at=account.created_at or "",
        )


# ---------------------------------------------------------------------------
# Books
# ---------------------------------------------------------------------------


class BookCreate(BaseModel):
    """Request body for POST /api/v1/books."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    title: str = Field(min_length=1, max_length=500)
    author: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    isbn: Optional[str] = Field(default=None, max_length=32)
    published_date: Optional[date] = None

    def to_book(self) -> Book:
        return Book(
            title=self.title,
            author=self.author,
            description=self.description,
            isbn=self.isbn,
            published_date=self.published_date.isoformat() if self.published_date else None,
        )


class BookUpdate(BaseModel):
    """Request body for PUT /api/v1/books/{id}. Only fields that are sent are changed."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1, max_length=500)
    author: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    isbn: Optional[str] = Field(default=None, max_length=32)
    published_date: Optional[date] = None


class BookResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    author: Optional[str]
    description: Optional[str]
    isbn: Optional[str]
    published_date: Optional[str]
    created_at: str

    @classmethod
    def from_book(cls, book: Book) -> "BookResponse":
        return cls(
            id=book.id,
            title=book.title,
            author=book.author,
            description=book.description,
            isbn=book.isbn,
            published_date=book.published_date,
            created_at=book.created_at,
        )
