"""Shared option schemas."""

from __future__ import annotations

from typing import Any, TypeVar

import pydantic
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from ..errors import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


class GeoPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90, validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(..., ge=-180, le=180, validation_alias=AliasChoices("longitude", "lng", "lon"))


def parse_options(model: type[ModelT], options: ModelT | dict[str, Any] | None = None, **overrides: Any) -> ModelT:
    """Build an options model from a model instance, a dict, or keyword arguments.

    Invalid values raise the engine's :class:`ValidationError`.
    """

    if isinstance(options, model) and not overrides:
        return options
    payload: dict[str, Any] = {}
    if isinstance(options, BaseModel):
        payload.update(options.model_dump(exclude_unset=True))
    elif options:
        payload.update(options)
    payload.update(overrides)
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid {model.__name__}: {exc}") from exc
