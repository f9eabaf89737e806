from __future__ import annotations

import argparse
import logging
import sys

from tqdm import tqdm

from osmsel.arrow import read_fixture
from osmsel.errors import OsmSelError
from osmsel.loader import load_store
from osmsel.osm.bbox import parse_bbox
from osmsel.selection import ElementSelection
from osmsel.selection import SelectionConfig
from osmsel.selection import full_expansion
from osmsel.selection import map_selection
from osmsel.store import MemoryElementStore

logger = logging.getLogger("osmsel.main")


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Load an OSM element fixture and run selections on it")
    parser.add_argument("--input_path", type=str, required=True, help="Path to the element fixture directory")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("load", help="Load the fixture and report user and changeset counts")

    full = commands.add_parser("full", help="Resolve relation/full")
    full.add_argument("--relation_id", type=int, required=True, help="Relation to expand")
    full.add_argument(
        "--max_depth", type=int, default=1, help="Relation levels to expand (at least 1), 0 for unbounded"
    )

    map_ = commands.add_parser("map", help="Select everything within a bounding box")
    map_.add_argument(
        "--bbox",
        type=str,
        required=True,
        help="min_lon,min_lat,max_lon,max_lat; pass as --bbox=<value> when it starts with a minus sign",
    )
    map_.add_argument("--max_area", type=float, default=0.25, help="Largest allowed area in square degrees")
    map_.add_argument("--max_nodes", type=int, default=50_000, help="Largest allowed number of nodes")

    return parser


def load(input_path: str) -> MemoryElementStore:
    elements = tqdm(read_fixture(input_path), desc="Reading elements", unit_scale=True)
    store, result = load_store(elements)

    for changeset in sorted(result.changesets.values(), key=lambda c: c.id):
        logger.debug(
            "changeset %d: %d changes between %s and %s",
            changeset.id,
            changeset.num_changes,
            changeset.min_timestamp,
            changeset.max_timestamp,
        )

    return store


def print_selection(selection: ElementSelection) -> None:
    for element in selection:
        print(f"{element.type.value}/{element.id} v{element.info.version}")


def main(argv: list[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)
    if args.command == "full" and args.max_depth < 0:
        parser.error("--max_depth must not be negative")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        store = load(args.input_path)

        if args.command == "full":
            max_depth = args.max_depth or None
            print_selection(full_expansion(store, args.relation_id, max_depth=max_depth))
        elif args.command == "map":
            config = SelectionConfig(max_area=args.max_area, max_nodes=args.max_nodes)
            print_selection(map_selection(store, parse_bbox(args.bbox), config))
    except OsmSelError as e:
        logger.error("%s", e)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
