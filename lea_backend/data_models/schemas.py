from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys (the wire format of the frontend and ATProto)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --------------------------------------------------
# Researcher verification
# --------------------------------------------------

class QuickVerifyRequest(CamelModel):
    bluesky_handle: str = Field(min_length=1)
    open_alex_id: Optional[str] = None
    orcid_id: Optional[str] = None
    website: Optional[HttpUrl | Literal[""]] = None
    display_name: Optional[str] = None

    @model_validator(mode="after")
    def require_identifier(self) -> "QuickVerifyRequest":
        if not (self.open_alex_id or self.orcid_id or self.website):
            raise ValueError("At least one of openAlexId, orcidId, or website is required")
        return self

    @property
    def website_url(self) -> Optional[str]:
        return str(self.website) if self.website else None


class VerifyPreviewRequest(CamelModel):
    bluesky_handle: Optional[str] = None
    open_alex_id: Optional[str] = None
    orcid_id: Optional[str] = None


class BulkVerifyEntry(CamelModel):
    bluesky_handle: Optional[str] = None
    orcid_id: Optional[str] = None
    display_name: Optional[str] = None


class BulkVerifyRequest(CamelModel):
    researchers: Optional[List[BulkVerifyEntry]] = None


# --------------------------------------------------
# Labeler label definitions (app.bsky.labeler.service policies)
# --------------------------------------------------

Severity = Literal["inform", "alert", "none"]
Blurs = Literal["content", "media", "none"]
DefaultSetting = Literal["ignore", "warn", "hide"]

DELETE_CONFIRM_PHRASE = "DELETE THIS LABEL"


class LabelLocale(CamelModel):
    lang: str = Field(min_length=2, max_length=5)
    name: str = Field(min_length=1, max_length=64)
    description: str = Field(min_length=1, max_length=10000)


class LabelDefinition(CamelModel):
    identifier: str = Field(min_length=1, max_length=128, pattern=r"^[a-z0-9-]+$")
    severity: Severity
    blurs: Blurs
    default_setting: DefaultSetting
    adult_only: bool = False
    locales: List[LabelLocale] = Field(min_length=1)


class LabelDefinitionUpdate(CamelModel):
    # Accepted only so a changed identifier can be rejected explicitly
    identifier: Optional[str] = None
    severity: Optional[Severity] = None
    blurs: Optional[Blurs] = None
    default_setting: Optional[DefaultSetting] = None
    adult_only: Optional[bool] = None
    locales: Optional[List[LabelLocale]] = Field(default=None, min_length=1)


class LabelDeleteConfirmation(CamelModel):
    confirm_identifier: str
    confirm_phrase: str

    @model_validator(mode="after")
    def check_phrase(self) -> "LabelDeleteConfirmation":
        if self.confirm_phrase != DELETE_CONFIRM_PHRASE:
            raise ValueError("Invalid confirmation phrase")
        return self
