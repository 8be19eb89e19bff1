#!/usr/bin/env python3
"""Demo: Using ctxexpand as a Python library.

This shows how to expand search results programmatically, not just through
the CLI.
"""

import asyncio

from ctxexpand.context import AccessMode, ContextExpander
from ctxexpand.hierarchy import GraphHierarchy, build_hierarchy_graph

SNAPSHOT = {
    "containers": [
        {
            "id": "page-trip",
            "title": "Trip planning",
            "children": [
                {
                    "id": "tripBlk01",
                    "content": "Budget for the trip",
                    "children": [
                        {"id": "tripBlk02", "content": "Flights: 420 EUR"},
                        {
                            "id": "tripBlk03",
                            "content": "Hotels, see ((tripBlk05))",
                            "children": [{"id": "tripBlk04", "content": "Three nights in Porto"}],
                        },
                    ],
                },
                {"id": "tripBlk05", "content": "Hotel shortlist in the notes page"},
            ],
        }
    ]
}


async def run():
    # 1. Build an in-memory hierarchy
    hierarchy = GraphHierarchy(build_hierarchy_graph(SNAPSHOT))

    # 2. Pretend a search matched one block and one page
    matches = hierarchy.lookup(["tripBlk03", "page-trip"])

    # 3. Expand them within a budget
    expander = ContextExpander(hierarchy)
    for mode in (AccessMode.BALANCED, AccessMode.FULL):
        print(f"--- {mode.value} ---")
        results = await expander.expand(matches, total_budget=2_000, access_mode=mode)
        for r in results:
            print(f"[{r.kind.value}] {r.id}")
            print(r.content)
            print()

    # 4. Squeeze hard: page results survive whole, block results give way
    print("--- 120 chars ---")
    for r in await expander.expand(matches, total_budget=120):
        print(f"[{r.kind.value}] {r.id}: {len(r.content)} chars")


def main():
    asyncio.run(run())


if __name__ == "__main__":
    main()
