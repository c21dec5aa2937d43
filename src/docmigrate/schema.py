"""
Schema collaborator used by the migration engine.

The engine only needs a narrow view of a schema: its version, the versions
that came before it, how to move between the storage id and the primary
key, and a validate() call. DocumentSchema implements that view on top of
a pydantic model, built either from a JSON-schema-like definition or from
an existing pydantic model class.

Example:
    >>> schema = DocumentSchema.from_definition({
    ...     "version": 2,
    ...     "primaryKey": "passportId",
    ...     "properties": {
    ...         "passportId": {"type": "string"},
    ...         "age": {"type": "integer"},
    ...     },
    ...     "required": ["passportId"],
    ... })
    >>> schema.validate({"passportId": "a1", "age": 12})
"""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model

from docmigrate.exceptions import SchemaValidationError
from docmigrate.models import Document
from docmigrate.stores.interface import STORAGE_ID_FIELD

_JSON_TYPES: dict[str, Any] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
    "array": list,
    "object": dict,
}


@runtime_checkable
class Schema(Protocol):
    """Protocol for the schema of one collection generation."""

    @property
    def version(self) -> int: ...

    @property
    def previous_versions(self) -> Sequence[int]: ...

    @property
    def primary_key(self) -> str | None: ...

    def validate(self, doc: Document) -> None:
        """
        Raises:
            SchemaValidationError: If the document does not match.
        """
        ...

    def map_storage_id_to_primary_key(self, doc: Document) -> Document: ...

    def map_primary_key_to_storage_id(self, doc: Document) -> Document: ...


class DocumentSchema:
    """
    Pydantic-backed schema for documents of one collection generation.

    Keys starting with an underscore are storage metadata (``_id``, ``_rev``)
    and are not validated.

    Attributes:
        version: Schema version number.
        previous_versions: Older versions that may still hold documents,
            ``range(0, version)`` unless given explicitly.
        primary_key: Field that carries the storage id, or None to keep ``_id``.
        model: Pydantic model used for validation, or None to accept anything.
        definition: Raw definition, as stored in the generation registry.
    """

    def __init__(
        self,
        version: int,
        *,
        primary_key: str | None = None,
        model: type[BaseModel] | None = None,
        previous_versions: Sequence[int] | None = None,
        definition: Mapping[str, Any] | None = None,
    ) -> None:
        if version < 0:
            raise ValueError(f"version must be >= 0, got {version}")
        self._version = version
        self._primary_key = primary_key
        self._model = model
        if previous_versions is None:
            previous_versions = range(0, version)
        self._previous_versions = tuple(previous_versions)
        self._definition = dict(definition) if definition is not None else {
            "version": version,
            "primaryKey": primary_key,
        }

    @property
    def version(self) -> int:
        return self._version

    @property
    def previous_versions(self) -> tuple[int, ...]:
        return self._previous_versions

    @property
    def primary_key(self) -> str | None:
        return self._primary_key

    @property
    def model(self) -> type[BaseModel] | None:
        return self._model

    @property
    def definition(self) -> dict[str, Any]:
        return copy.deepcopy(self._definition)

    @classmethod
    def from_definition(cls, definition: Mapping[str, Any]) -> DocumentSchema:
        """
        Build a schema from a JSON-schema-like definition.

        Recognized keys: ``version`` (required), ``primaryKey``,
        ``previousVersions``, ``properties`` (name -> {"type": ...}),
        ``required`` and ``additionalProperties``.

        Raises:
            ValueError: If the definition has no integer version.
        """
        version = definition.get("version")
        if isinstance(version, bool) or not isinstance(version, int):
            raise ValueError(f"Schema definition needs an integer 'version', got {version!r}")

        properties: Mapping[str, Any] = definition.get("properties") or {}
        required = set(definition.get("required") or ())
        extra = "forbid" if definition.get("additionalProperties") is False else "allow"

        model = None
        if properties:
            fields: dict[str, Any] = {}
            for index, (name, spec) in enumerate(properties.items()):
                if name.startswith("_"):
                    continue
                python_type = _JSON_TYPES.get((spec or {}).get("type"), Any)
                if name in required:
                    fields[f"field_{index}"] = (python_type, Field(alias=name))
                else:
                    optional = python_type if python_type is Any else python_type | None
                    fields[f"field_{index}"] = (optional, Field(default=None, alias=name))
            model = create_model(
                f"DocumentV{version}",
                __config__=ConfigDict(extra=extra, strict=True),
                **fields,
            )

        return cls(
            version,
            primary_key=definition.get("primaryKey"),
            model=model,
            previous_versions=definition.get("previousVersions"),
            definition=definition,
        )

    @classmethod
    def from_model(
        cls,
        model: type[BaseModel],
        version: int,
        *,
        primary_key: str | None = None,
        previous_versions: Sequence[int] | None = None,
    ) -> DocumentSchema:
        """Build a schema that validates with an existing pydantic model."""
        return cls(
            version,
            primary_key=primary_key,
            model=model,
            previous_versions=previous_versions,
            definition={
                "version": version,
                "primaryKey": primary_key,
                "title": model.__name__,
            },
        )

    def validate(self, doc: Document) -> None:
        if self._model is None:
            return
        data = {key: value for key, value in doc.items() if not key.startswith("_")}
        try:
            self._model.model_validate(data)
        except ValidationError as e:
            errors = [
                f"{'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}"
                for error in e.errors()
            ]
            raise SchemaValidationError(self._version, errors) from e

    def map_storage_id_to_primary_key(self, doc: Document) -> Document:
        if not self._primary_key or self._primary_key == STORAGE_ID_FIELD:
            return dict(doc)
        mapped = dict(doc)
        if STORAGE_ID_FIELD in mapped:
            mapped[self._primary_key] = mapped.pop(STORAGE_ID_FIELD)
        return mapped

    def map_primary_key_to_storage_id(self, doc: Document) -> Document:
        if not self._primary_key or self._primary_key == STORAGE_ID_FIELD:
            return dict(doc)
        mapped = dict(doc)
        if self._primary_key in mapped:
            mapped[STORAGE_ID_FIELD] = mapped.pop(self._primary_key)
        return mapped

    def __repr__(self) -> str:
        return f"DocumentSchema(version={self._version}, primary_key={self._primary_key!r})"


__all__ = [
    "Schema",
    "DocumentSchema",
]
