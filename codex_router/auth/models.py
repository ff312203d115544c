from dataclasses import dataclass
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class CodexTokens(BaseModel):
    model_config = ConfigDict(extra="allow")

    access_token: str = Field(min_length=1)
    refresh_token: str = Field(min_length=1)
    id_token: str = Field(min_length=1)
    account_id: Optional[str] = None


class CodexAuth(BaseModel):
    """The credential bundle stored in ~/.codex/auth.json."""
    model_config = ConfigDict(extra="allow")

    tokens: CodexTokens
    last_refresh: Optional[str] = None
    auth_mode: Optional[str] = None
    api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_unset=True)


class ProfileRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    saved_at: str = Field(alias="savedAt")
    credentials: CodexAuth = Field(alias="auth")

    def to_json_dict(self) -> dict:
        return {
            "name": self.name,
            "savedAt": self.saved_at,
            "auth": self.credentials.to_json_dict(),
        }


class ProfileSummary(BaseModel):
    name: str
    saved_at: str
    is_active: bool = False


class TokenRefreshResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    access_token: str = Field(min_length=1)
    id_token: str = Field(min_length=1)
    refresh_token: Optional[str] = None
    expires_in: Optional[float] = None


@dataclass
class RefreshOutcome:
    credentials: CodexAuth
    refreshed: bool
