"""Model reference encoding for queued mail arguments.

The queue transport only carries JSON-compatible payloads, so domain objects
passed to deferred deliveries travel as ``{"model": ..., "id": ...}`` records
and are looked up again by id when the job runs:

    {"user": <User id=1971>}  ->  {"user": {"model": "User", "id": 1971}}

Only the values of mapping arguments are inspected.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError

ModelLookup = Callable[[Any], Any]
ModelT = TypeVar("ModelT", bound=type)

_LOOKUP_METHOD_NAMES = ("find", "get")


class ModelReference(BaseModel):
    """Serializable stand-in for a persisted domain object."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    model: str = Field(..., min_length=1)
    id: int | str

    def to_payload(self) -> dict[str, Any]:
        """Wire form with exactly the `model` and `id` keys."""
        return {"model": self.model, "id": self.id}


def is_reference_payload(value: Any) -> bool:
    """Return whether value is a mapping carrying both `model` and `id`."""
    if not isinstance(value, Mapping):
        return False
    # Keys arrive as strings from the queue but not for synchronous deliveries.
    keys = {str(key) for key in value}
    return "model" in keys and "id" in keys


class ModelRegistry:
    """Explicit table of model names that may be resolved from job payloads."""

    def __init__(self) -> None:
        self._models: dict[str, tuple[type, ModelLookup | None]] = {}
        self._names: dict[type, str] = {}

    def register(
        self,
        model_cls: ModelT | None = None,
        lookup: ModelLookup | None = None,
        *,
        name: str | None = None,
    ) -> Any:
        """Register a model class, directly or as a class decorator.

        Without an explicit `lookup`, the class's `find` or `get` attribute is
        used, read at resolve time.
        """
        if model_cls is None:

            def decorator(cls: ModelT) -> ModelT:
                return self.register(cls, lookup, name=name)

            return decorator

        model_name = name or model_cls.__name__
        self._models[model_name] = (model_cls, lookup)
        self._names[model_cls] = model_name
        return model_cls

    def unregister(self, name: str) -> None:
        entry = self._models.pop(name, None)
        if entry is not None:
            self._names.pop(entry[0], None)

    def name_for(self, model_cls: type) -> str:
        """Name used in references for instances of `model_cls`."""
        return self._names.get(model_cls, model_cls.__name__)

    def resolve(self, name: str) -> ModelLookup | None:
        """Return the lookup-by-id callable for `name`, if any."""
        entry = self._models.get(name)
        if entry is None:
            return None

        model_cls, lookup = entry
        if lookup is not None:
            return lookup
        for method_name in _LOOKUP_METHOD_NAMES:
            candidate = getattr(model_cls, method_name, None)
            if callable(candidate):
                return candidate
        return None

    def __contains__(self, name: object) -> bool:
        return name in self._models


models = ModelRegistry()


class ModelReferenceCodec:
    """Swap model values in mapping arguments for references and back."""

    def __init__(
        self,
        registry: ModelRegistry | None = None,
        *,
        identity_attribute: str = "id",
        logger: logging.Logger | None = None,
    ) -> None:
        self.registry = registry if registry is not None else models
        self.identity_attribute = identity_attribute
        self.logger = logger or logging.getLogger(__name__)

    def identity_of(self, value: Any) -> int | str | None:
        """Return the durable id of value, or None for plain values."""
        try:
            identity = getattr(value, self.identity_attribute, None)
            if callable(identity):
                identity = identity()
        except Exception:
            return None

        if isinstance(identity, UUID):
            return str(identity)
        if isinstance(identity, bool) or not isinstance(identity, (int, str)):
            return None
        if identity == id(value):
            return None
        return identity

    def encode(self, *args: Any) -> tuple[Any, ...]:
        """Replace model values of mapping arguments with reference payloads."""
        return tuple(self._encode_argument(arg) for arg in args)

    def decode(self, *args: Any) -> tuple[Any, ...]:
        """Resolve reference payloads of mapping arguments back to models."""
        return tuple(self._decode_argument(arg) for arg in args)

    def _encode_argument(self, arg: Any) -> Any:
        if not isinstance(arg, Mapping):
            return arg
        return {key: self._encode_value(value) for key, value in arg.items()}

    def _encode_value(self, value: Any) -> Any:
        identity = self.identity_of(value)
        if identity is None:
            return value
        reference = ModelReference(
            model=self.registry.name_for(type(value)), id=identity
        )
        return reference.to_payload()

    def _decode_argument(self, arg: Any) -> Any:
        if not isinstance(arg, Mapping):
            return arg

        decoded: dict[Any, Any] = {}
        for key, value in arg.items():
            if not is_reference_payload(value):
                decoded[key] = value
                continue
            instance = self._resolve(key, value)
            if instance is not None:
                decoded[key] = instance
        return decoded

    def _resolve(self, key: Any, payload: Mapping[Any, Any]) -> Any | None:
        normalized = {str(item_key): item for item_key, item in payload.items()}
        try:
            reference = ModelReference.model_validate(normalized)
        except ValidationError:
            self.logger.warning("Dropping malformed model reference key=%s", key)
            return None

        lookup = self.registry.resolve(reference.model)
        if lookup is None:
            self.logger.warning(
                "Dropping reference key=%s to unresolvable model=%s",
                key,
                reference.model,
            )
            return None

        try:
            instance = lookup(reference.id)
        except Exception:
            self.logger.warning(
                "Lookup failed for key=%s model=%s id=%s",
                key,
                reference.model,
                reference.id,
                exc_info=True,
            )
            return None

        if instance is None:
            self.logger.warning(
                "Dropping reference key=%s model=%s id=%s (not found)",
                key,
                reference.model,
                reference.id,
            )
        return instance
