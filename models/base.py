"""
Base schemas for all models.
"""

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """
    Base for all schemas.

    Features:
        - Auto-trim whitespace from strings
        - Validate on attribute assignment
        - Allow ORM objects (from_attributes)
    """
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        validate_assignment=True
    )


class RecordSchema(BaseModel):
    """
    Base for rows loaded from the backend.

    Unknown columns are kept (extra="allow") so a record can be written back
    or merged without losing fields this service does not model. Strings are
    not trimmed: cell values are stored exactly as the user typed them.
    """
    model_config = ConfigDict(
        from_attributes=True,
        extra="allow"
    )
