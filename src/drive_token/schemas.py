"""
Structural schemas for the client secrets and token files.

Validation is pure: the functions below either return the parsed model or
raise SchemaValidationError listing every failed check. Deciding what a
failure means (fatal, or "re-authorize") is left to the caller.
"""

from typing import Annotated, Any, List, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
)

from .exceptions import SchemaValidationError

# Last millisecond of year 9999, the largest instant datetime can represent
MAX_EXPIRY_MILLIS = 253402300799999

ExpiryMillis = Union[
    Annotated[StrictInt, Field(ge=0, le=MAX_EXPIRY_MILLIS)],
    Annotated[StrictFloat, Field(ge=0, le=MAX_EXPIRY_MILLIS, allow_inf_nan=False)],
]


class InstalledClientSchema(BaseModel):
    """The "installed" section of a Google OAuth client secrets file."""

    model_config = ConfigDict(extra="allow")

    client_id: StrictStr = Field(min_length=1)
    client_secret: StrictStr = Field(min_length=1)
    project_id: Optional[StrictStr] = None
    auth_uri: Optional[StrictStr] = None
    token_uri: Optional[StrictStr] = None
    auth_provider_x509_cert_url: Optional[StrictStr] = None
    redirect_uris: Optional[List[StrictStr]] = None


class CredentialsFileSchema(BaseModel):
    """Client secrets file downloaded for an installed (desktop) application."""

    model_config = ConfigDict(extra="allow")

    installed: InstalledClientSchema


class TokenSchema(BaseModel):
    """Stored OAuth token, as written by the Google client libraries."""

    model_config = ConfigDict(extra="ignore")

    access_token: StrictStr
    refresh_token: Optional[StrictStr] = None
    expiry_date: Optional[ExpiryMillis] = None
    scope: Optional[StrictStr] = None
    token_type: Optional[StrictStr] = None
    id_token: Optional[StrictStr] = None


def format_errors(error: ValidationError) -> List[str]:
    """
    Flatten a pydantic ValidationError into readable lines.

    Args:
        error: Validation error raised by a schema model

    Returns:
        One "<field path>: <message>" line per failed check
    """
    lines = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"]) or "(root)"
        lines.append(f"{location}: {detail['msg']}")
    return lines


def validate_credentials(data: Any) -> CredentialsFileSchema:
    """
    Validate parsed client secrets data.

    Args:
        data: Result of json.load() on the client secrets file

    Returns:
        Parsed CredentialsFileSchema

    Raises:
        SchemaValidationError: If the data does not match the schema
    """
    if not isinstance(data, dict):
        raise SchemaValidationError(
            "Invalid credentials data", ["Credentials must be a non-null object"]
        )
    try:
        return CredentialsFileSchema.model_validate(data)
    except ValidationError as e:
        raise SchemaValidationError("Invalid credentials data", format_errors(e)) from e


def validate_token(data: Any) -> TokenSchema:
    """
    Validate parsed token data.

    Args:
        data: Result of json.load() on the token file, or a token response

    Returns:
        Parsed TokenSchema

    Raises:
        SchemaValidationError: If the data does not match the schema
    """
    if not isinstance(data, dict):
        raise SchemaValidationError(
            "Invalid token data", ["Token must be a non-null object"]
        )
    try:
        return TokenSchema.model_validate(data)
    except ValidationError as e:
        raise SchemaValidationError("Invalid token data", format_errors(e)) from e
