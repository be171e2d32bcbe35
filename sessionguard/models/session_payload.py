# sessionguard/models/session_payload.py
"""
Versioned schema of the JSON payload stored under ``sess:{sessionId}``.

Payloads written before versioning have no ``schema_version``; they are read
as version 0 and accepted as long as the typed fields validate. Fields the
application adds (cookie settings and the like) are carried through untouched.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError, field_validator

CURRENT_SCHEMA_VERSION = 1
LEGACY_SCHEMA_VERSION = 0
SUPPORTED_SCHEMA_VERSIONS = {LEGACY_SCHEMA_VERSION, CURRENT_SCHEMA_VERSION}


def check_schema_version(value: int) -> int:
    if value not in SUPPORTED_SCHEMA_VERSIONS:
        raise ValueError(f"unsupported session schema version {value}")
    return value


class SessionUser(BaseModel):
    """Identity embedded in an authenticated session"""
    model_config = ConfigDict(extra="allow")

    id: StrictStr
    email: Optional[str] = None
    is_global_admin: bool = False
    email_verified: bool = False
    has_staff_role: bool = False


class SessionPayload(BaseModel):
    """Application payload of one session record"""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    schema_version: int = LEGACY_SCHEMA_VERSION
    user: Optional[SessionUser] = None
    created_at: Optional[int] = Field(default=None, alias="createdAt")
    csrf_token: Optional[str] = Field(default=None, alias="csrfToken")

    @field_validator("schema_version")
    @classmethod
    def _known_version(cls, value: int) -> int:
        return check_schema_version(value)

    @property
    def owner_id(self) -> Optional[str]:
        return self.user.id if self.user else None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def to_json(self) -> str:
        """Serialize with the wire names (``createdAt``, ``csrfToken``)"""
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_json(cls, raw: str) -> "SessionPayload":
        """Parse a stored payload; raises pydantic.ValidationError if it does not fit"""
        return cls.model_validate_json(raw)


class _OwnerRef(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: StrictStr


class SessionOwnerView(BaseModel):
    """
    The part of a payload that decides ownership.

    Used when scanning historical records: a record whose other fields no
    longer validate still belongs to its user and must still be revocable.
    """
    model_config = ConfigDict(extra="ignore")

    schema_version: int = LEGACY_SCHEMA_VERSION
    user: Optional[_OwnerRef] = None

    @field_validator("schema_version")
    @classmethod
    def _known_version(cls, value: int) -> int:
        return check_schema_version(value)


def parse_session_owner(raw: Optional[str]) -> Optional[str]:
    """
    Owning user id of a stored payload, or None.

    Historical payloads are untrusted: anything that is not a JSON object
    with a string ``user.id`` under a known schema version is reported as
    unowned instead of raising.
    """
    if not raw:
        return None
    try:
        view = SessionOwnerView.model_validate_json(raw)
    except ValidationError:
        return None
    return view.user.id if view.user else None
