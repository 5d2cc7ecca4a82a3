"""Identity of the ledger owner."""

from pydantic import BaseModel, Field


class Identity(BaseModel):
    """Authenticated (or anonymous) owner of a ledger."""

    id: str = Field(..., description="Owner ID used to scope stored records")
    email: str | None = Field(default=None, description="Sign-in email, None for the anonymous owner")
    name: str = Field(default="", description="Display name")
    anonymous: bool = Field(default=False, description="True for the implicit local-mode owner")
