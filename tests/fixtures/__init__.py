"""
Shared test fixtures for the docmigrate library.

Usage:
    from tests.fixtures import (
        COLLECTION_NAME,
        HERO_V1,
        HERO_V2,
        HERO_V3,
        identity,
        make_heroes,
        seed_generation,
    )
"""

from tests.fixtures.heroes import (
    COLLECTION_NAME,
    HERO_V1,
    HERO_V2,
    HERO_V3,
    identity,
    make_heroes,
    seed_generation,
)

__all__ = [
    "COLLECTION_NAME",
    "HERO_V1",
    "HERO_V2",
    "HERO_V3",
    "identity",
    "make_heroes",
    "seed_generation",
]
