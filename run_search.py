#!/usr/bin/env python3
"""
CLI for the location search engine.

Usage:
    python run_search.py "starbucks"
    python run_search.py "bella" --lat 43.6532 --lng -79.3832
    python run_search.py "coffee" --lat 43.65 --lng -79.38 --json
    python run_search.py "matcha" --no-network
"""

import argparse
import json
import logging
import sys
import time
from typing import List

from location_search.config import load_config
from location_search.distance import format_distance, group_by_source
from location_search.engine import LocationSearchEngine
from location_search.models import LocationResult, source_label


def setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )


class _NoNetwork:
    """Stand-in adapter for --no-network: contributes nothing."""

    def fetch_pois(self, query, ref_location, token):
        return []

    def geocode(self, query, token, ref_location=None):
        return []


def print_results(results: List[LocationResult], trust_order):
    if not results:
        print("No results.")
        return
    for group in group_by_source(results, trust_order):
        print(f"\n{source_label(group['source'])}")
        for r in group["items"]:
            dist = format_distance(r.distance_km)
            suffix = f"  ({dist})" if dist else ""
            address = f", {r.address}" if r.address else ""
            print(f"  {r.icon} {r.name}{address}{suffix}")


def main():
    parser = argparse.ArgumentParser(description="Location search engine")
    parser.add_argument("query", nargs="?", help="Place, business or address to search for")
    parser.add_argument("--lat", type=float, help="Reference latitude")
    parser.add_argument("--lng", type=float, help="Reference longitude")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    parser.add_argument("--no-network", action="store_true", help="Search the business directory only")
    parser.add_argument("--limit", type=int, default=None, help="Maximum results")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")

    args = parser.parse_args()
    setup_logging(args.verbose)

    if not args.query:
        parser.print_help()
        sys.exit(1)
    if (args.lat is None) != (args.lng is None):
        parser.error("--lat and --lng must be given together")

    config = load_config()
    if args.limit:
        config.max_results = args.limit

    offline = _NoNetwork() if args.no_network else None
    t0 = time.time()
    with LocationSearchEngine(config, poi_fetcher=offline, geocoder=offline) as engine:
        if args.lat is not None:
            try:
                engine.update_location(args.lat, args.lng)
            except ValueError as e:
                parser.error(str(e))
        results = engine.search(args.query)

    if args.json:
        print(json.dumps([r.to_dict() for r in results], indent=2, ensure_ascii=False))
    else:
        print_results(results, config.trust_order)
        print(f"\n{len(results)} results in {time.time() - t0:.2f}s")


if __name__ == "__main__":
    main()
