"""Strict schema baselines with forbidden extras by default."""

from pydantic import BaseModel, ConfigDict


class StrictModel(BaseModel):
    """Neutral strict base for DTOs."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class StrictRequestModel(StrictModel):
    """
    Request DTO base that always forbids unexpected fields.

    Clients send camelCase keys; fields declare them as aliases and may
    also be populated by their Python names.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True, populate_by_name=True)
