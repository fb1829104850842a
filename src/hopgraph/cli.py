"""
Command line interface.

Examples:
    python -m hopgraph render ipv4.json ipv6.json --mode full --asn box
    python -m hopgraph fetch --probe-id 6789 \\
        --destination "151.101.0.1 / 2a04:4e42::1" --format dot
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from . import __version__
from .config import load_config, replace_config
from .errors import HopGraphError
from .export import save, to_dot, to_json
from .fetch import fetch_traceroute_graph
from .generator import TracerouteGraphGenerator

logger = logging.getLogger("hopgraph")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hopgraph",
        description="Build ASN-grouped layered graphs from traceroute data.",
    )
    parser.add_argument("--version", action="version", version=f"hopgraph {__version__}")
    parser.add_argument("--config", help="YAML config file (default: environment)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--mode", choices=["clean", "full"], help="Payload shape")
    common.add_argument("--asn", choices=["box", "color"], help="ASN presentation")
    common.add_argument(
        "--format",
        choices=["json", "dot"],
        help="Output format (default: from the -o suffix, else json)",
    )
    common.add_argument("--highlight", metavar="EDGE_ID", help="Edge to highlight")
    common.add_argument("-o", "--output", help="Write to file instead of stdout")

    subparsers = parser.add_subparsers(dest="command", required=True)

    render = subparsers.add_parser(
        "render", parents=[common], help="Render payloads saved as JSON files"
    )
    render.add_argument("payloads", nargs="+", help="One payload file per family")

    fetch = subparsers.add_parser(
        "fetch", parents=[common], help="Fetch payloads from the backend API"
    )
    fetch.add_argument("--probe-id", type=int, required=True)
    fetch.add_argument(
        "--destination", required=True, help='Address(es), e.g. "a / b" for dual stack'
    )
    fetch.add_argument("--base-url", help="Backend base URL")
    fetch.add_argument(
        "--allow-partial",
        action="store_true",
        default=None,
        help="Merge the families that resolved when others fail",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    overrides = {}
    if args.mode:
        overrides["mode"] = args.mode
    if args.asn:
        overrides["asn_mode"] = args.asn
    if getattr(args, "base_url", None):
        overrides["api_base_url"] = args.base_url
    if getattr(args, "allow_partial", None):
        overrides["allow_partial"] = True
    config = replace_config(load_config(args.config), overrides)
    generator = TracerouteGraphGenerator(config)

    try:
        if args.command == "render":
            payloads = []
            for path in args.payloads:
                with open(path, "r", encoding="utf-8") as f:
                    payloads.append(json.load(f))
            graph = generator.generate(payloads)
        else:
            merged = asyncio.run(
                fetch_traceroute_graph(
                    config.api_base_url,
                    args.probe_id,
                    args.destination,
                    mode=config.mode,
                    allow_partial=config.allow_partial,
                    timeout=config.request_timeout,
                )
            )
            graph = generator.render(merged)

        if args.highlight:
            graph = generator.highlight(graph, args.highlight)
        if args.output:
            save(graph, args.output, args.format)
            return 0
    except (HopGraphError, KeyError, OSError, ValueError) as e:
        logger.error("%s", e)
        return 1

    output = to_dot(graph) if args.format == "dot" else to_json(graph)
    sys.stdout.write(output)
    if not output.endswith("\n"):
        sys.stdout.write("\n")
    return 0
