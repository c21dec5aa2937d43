"""
Field codec collaborators: key compression and field encryption.

The migration engine never implements compression or encryption itself.
It asks a factory for a KeyCompressor (built from a schema) and a Crypter
(built from the database password and a schema), and calls them to move
documents between their storage representation and plain form.

The pass-through implementations are the defaults for collections that use
neither feature.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from docmigrate.models import Document

if TYPE_CHECKING:
    from docmigrate.schema import Schema


@runtime_checkable
class KeyCompressor(Protocol):
    """Maps field names between their stored (compressed) and plain form."""

    def compress(self, doc: Document) -> Document: ...

    def decompress(self, doc: Document) -> Document: ...


@runtime_checkable
class Crypter(Protocol):
    """Encrypts and decrypts the encrypted fields of a document."""

    def encrypt(self, doc: Document) -> Document: ...

    def decrypt(self, doc: Document) -> Document: ...


KeyCompressorFactory = Callable[["Schema"], KeyCompressor]
CrypterFactory = Callable[[str | None, "Schema"], Crypter]


class PassthroughKeyCompressor:
    """KeyCompressor for schemas without key compression."""

    def __init__(self, schema: Schema | None = None) -> None:
        self.schema = schema

    def compress(self, doc: Document) -> Document:
        return dict(doc)

    def decompress(self, doc: Document) -> Document:
        return dict(doc)


class PassthroughCrypter:
    """Crypter for schemas without encrypted fields."""

    def __init__(self, password: str | None = None, schema: Schema | None = None) -> None:
        self.password = password
        self.schema = schema

    def encrypt(self, doc: Document) -> Document:
        return dict(doc)

    def decrypt(self, doc: Document) -> Document:
        return dict(doc)


def passthrough_compressor_factory(schema: Schema) -> KeyCompressor:
    return PassthroughKeyCompressor(schema)


def passthrough_crypter_factory(password: str | None, schema: Schema) -> Crypter:
    return PassthroughCrypter(password, schema)


__all__ = [
    "KeyCompressor",
    "Crypter",
    "KeyCompressorFactory",
    "CrypterFactory",
    "PassthroughKeyCompressor",
    "PassthroughCrypter",
    "passthrough_compressor_factory",
    "passthrough_crypter_factory",
]
