"""Schema baselines shared by request and response DTOs."""

from pydantic import BaseModel, ConfigDict


class StrictModel(BaseModel):
    """Response DTO base; reads ORM attributes and rejects unknown fields."""

    model_config = ConfigDict(extra="forbid", from_attributes=True)


class StrictRequestModel(BaseModel):
    """Request DTO base that forbids unexpected fields and trims strings."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, validate_assignment=True)
