"""Base model configuration for all data structures."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Model(BaseModel):
    """Base model with standard configuration."""

    model_config = ConfigDict(frozen=True)


class WireModel(Model):
    """Model for node responses, which use camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
