"""
Atlas Search index management for the record collection.

The index is external setup, not runtime logic: the search service assumes it
exists. Mapping per catalog kind:

- TEXT   -> autocomplete (nGram) for CONTAINS, string, token (lowercase) for EQUALS
- SET    -> token
- DATE   -> date
- NUMBER -> number
- tenant -> token
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

from pymongo.operations import SearchIndexModel

from .catalog import CATALOG, FilterKind
from .stores import DEFAULT_SEARCH_INDEX
from .tenant import DEFAULT_TENANT_FIELD

if TYPE_CHECKING:
    from pymongo.asynchronous.collection import AsyncCollection

logger = logging.getLogger("recsearch.indexes")

AUTOCOMPLETE_MIN_GRAMS = 1
AUTOCOMPLETE_MAX_GRAMS = 25


def _mapping_for(kind: FilterKind) -> dict[str, Any] | list[dict[str, Any]]:
    if kind is FilterKind.TEXT:
        return [
            {
                "type": "autocomplete",
                "tokenization": "nGram",
                "minGrams": AUTOCOMPLETE_MIN_GRAMS,
                "maxGrams": AUTOCOMPLETE_MAX_GRAMS,
                "foldDiacritics": True,
            },
            {"type": "string"},
            {"type": "token", "normalizer": "lowercase"},
        ]
    if kind is FilterKind.SET:
        return {"type": "token"}
    if kind is FilterKind.DATE:
        return {"type": "date"}
    return {"type": "number"}


def build_search_index_definition(tenant_field: str = DEFAULT_TENANT_FIELD) -> dict[str, Any]:
    """Static-mapping index definition derived from the field catalog."""
    fields: dict[str, Any] = {tenant_field: {"type": "token"}}
    for spec in CATALOG.values():
        for kind in spec.kinds:
            fields[spec.path] = _mapping_for(kind)
    return {"mappings": {"dynamic": False, "fields": fields}}


async def list_search_index(
    collection: "AsyncCollection",
    index_name: str = DEFAULT_SEARCH_INDEX,
) -> dict[str, Any] | None:
    """Current description of the named search index, if any."""
    cursor = await collection.list_search_indexes(index_name)
    indexes = await cursor.to_list(length=None)
    return indexes[0] if indexes else None


async def ensure_search_index(
    collection: "AsyncCollection",
    index_name: str = DEFAULT_SEARCH_INDEX,
    tenant_field: str = DEFAULT_TENANT_FIELD,
) -> bool:
    """
    Create the Atlas Search index if it does not exist.

    Returns:
        bool: True if the index was created, False if it already exists
    """
    if await list_search_index(collection, index_name) is not None:
        logger.info(f"Search index '{index_name}' already exists")
        return False

    model = SearchIndexModel(
        definition=build_search_index_definition(tenant_field),
        name=index_name,
        type="search",
    )
    try:
        await collection.create_search_index(model)
    except Exception as e:
        logger.error(f"Error creating search index '{index_name}': {e}")
        raise
    logger.info(f"Search index '{index_name}' created")
    return True


async def wait_for_search_index(
    collection: "AsyncCollection",
    index_name: str = DEFAULT_SEARCH_INDEX,
    timeout: float = 60.0,
    interval: float = 1.0,
) -> bool:
    """
    Poll until the search index reports ``queryable``.

    This is the explicit, caller-side way to wait for the index after setup or
    bulk writes; the search path itself never waits.

    Returns:
        True once queryable, False if ``timeout`` elapsed first.
    """
    deadline = time.monotonic() + timeout
    while True:
        index = await list_search_index(collection, index_name)
        if index is not None and index.get("queryable"):
            logger.info(f"Search index '{index_name}' is queryable")
            return True
        if time.monotonic() >= deadline:
            status = index.get("status") if index else "missing"
            logger.warning(f"Search index '{index_name}' not queryable after {timeout}s ({status})")
            return False
        await asyncio.sleep(interval)
