"""Base model configuration for all Pydantic models."""

from pydantic import BaseModel, ConfigDict


class KubefirstBaseModel(BaseModel):
    """Base model with common configuration.

    Conventions:
    - All timestamps are ISO 8601 format with timezone (UTC preferred)
    - Field names are lowercase snake_case, matching the persisted JSON keys
    - Enum fields are stored as their plain string values, including defaults
      and values assigned after construction
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
        validate_assignment=True,
    )
