from typing import Literal
from pydantic import BaseModel, ConfigDict, Field


class ResolvedEntity(BaseModel):
    """An entity that exists in the accounting system."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str = ""


class QBOCredentials(BaseModel):
    """Already-refreshed OAuth credential handed in per invocation."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    access_token: str = Field(min_length=1, alias="accessToken")
    realm_id: str = Field(min_length=1, alias="realmId")
    environment: Literal["sandbox", "production"] = "sandbox"
