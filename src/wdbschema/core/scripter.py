"""Schema scripting pipeline: load, order and generate.

This module wires the catalog loader, the dependency resolver and the DDL
generator together. It is intentionally free of CLI concerns (output,
exit codes) so it can be reused by other frontends and tests.
"""

from __future__ import annotations

import logging
from typing import Iterator

from wdbschema.core.catalog import CatalogAdapter, load_objects
from wdbschema.core.ddl import ScriptOptions, generate
from wdbschema.core.models import DatabaseObjectRef, ObjectGraph
from wdbschema.core.resolver import order_objects
from wdbschema.core.selectors import ObjectSelector

logger = logging.getLogger(__name__)


def plan_database(
    adapter: CatalogAdapter,
    selector: ObjectSelector,
    options: ScriptOptions | None = None,
) -> tuple[ObjectGraph, list[DatabaseObjectRef]]:
    """
    Load the selected objects and put them in dependency order.

    Returns:
        The loaded graph and its refs in the order they will be scripted.
    """
    options = options or ScriptOptions()
    graph = load_objects(adapter, selector, include_system=options.allow_system_objects)
    ordered = order_objects(graph)
    logger.info("Resolved script order for %d object(s)", len(ordered))
    return graph, ordered


def script_database(
    adapter: CatalogAdapter,
    selector: ObjectSelector,
    options: ScriptOptions | None = None,
) -> Iterator[str]:
    """
    Script the selected objects of a database.

    Loading and ordering happen eagerly, so catalog and cycle errors are
    raised by this call and the connection behind `adapter` may be released
    afterwards. The returned batches are generated lazily.

    Args:
        adapter: Catalog adapter bound to the target database.
        selector: Decides which objects are scripted.
        options: Scripting options; defaults to `ScriptOptions()`.

    Returns:
        An iterator over DDL batches in dependency order.
    """
    options = options or ScriptOptions()
    graph, ordered = plan_database(adapter, selector, options)
    return generate(ordered, graph, options)
