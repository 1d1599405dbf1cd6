"""
Job control API schemas.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.models.enums import EventCategory, JobAction


class JobFilters(BaseModel):
    """Subscription filters."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    account_addresses: list[str] = Field(default_factory=list, alias="accountAddresses")
    transaction_types: list[str] = Field(default_factory=list, alias="transactionTypes")
    start_slot: int | None = Field(default=None, ge=0, alias="startSlot")
    end_slot: int | None = Field(default=None, ge=0, alias="endSlot")

    @model_validator(mode="after")
    def validate_slot_range(self) -> "JobFilters":
        """endSlot must lie after startSlot."""
        if (
            self.start_slot is not None
            and self.end_slot is not None
            and self.end_slot <= self.start_slot
        ):
            raise ValueError("endSlot must be greater than startSlot")
        return self


class CreateJobRequest(BaseModel):
    """Body of POST /api/jobs."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    db_connection_id: int = Field(..., gt=0, alias="dbConnectionId")
    type: str = Field(default="webhook", min_length=1, max_length=50)
    categories: dict[str, bool]
    filters: JobFilters = Field(default_factory=JobFilters)
    webhook: dict[str, Any] = Field(default_factory=lambda: {"enabled": True})

    @field_validator("categories")
    @classmethod
    def validate_categories(cls, v: dict[str, bool]) -> dict[str, bool]:
        """At least one known category must be enabled."""
        known = {category.value for category in EventCategory}
        unknown = set(v) - known
        if unknown:
            raise ValueError(f"Unknown categories: {', '.join(sorted(unknown))}")
        if not any(v.values()):
            raise ValueError("At least one category must be enabled")
        return v

    def to_config(self) -> dict[str, Any]:
        """Build the persisted job config document."""
        return {
            "categories": self.categories,
            "filters": self.filters.model_dump(by_alias=True, exclude_none=True),
            "webhook": self.webhook,
        }


class JobActionRequest(BaseModel):
    """Body of PATCH /api/jobs/{job_id}."""

    action: JobAction
