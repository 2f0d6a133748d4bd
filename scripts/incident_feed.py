#!/usr/bin/env python3
"""Build the incident feed and print it as JSON.

Online mode searches the X recent-search API (catalogue entries plus the
default live plan, or a single ``--query``). Offline mode (``--posts-jsonl``)
clusters a file of already-fetched posts without touching the network.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path

INCIDENTDESK_HOME = Path(__file__).resolve().parents[1]
os.environ.setdefault("INCIDENTDESK_HOME", str(INCIDENTDESK_HOME))
sys.path.insert(0, str(INCIDENTDESK_HOME))

from incidentdesk.assembler import IncidentAssembler  # noqa: E402
from incidentdesk.catalogue import load_catalogue  # noqa: E402
from incidentdesk.config import load_config  # noqa: E402
from incidentdesk.models import Post  # noqa: E402
from incidentdesk.report import ReportSchemaError, dumps_payload, incidents_payload, validate_payload, write_payload  # noqa: E402
from incidentdesk.x_search import XSearchClient, load_bearer_token  # noqa: E402

logger = logging.getLogger("incident_feed")


def read_posts_jsonl(path: Path) -> list[Post]:
    posts: list[Post] = []
    with open(path, encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                obj = json.loads(line)
                if not isinstance(obj, dict):
                    raise ValueError("not an object")
                posts.append(Post.from_dict(obj))
            except ValueError as e:
                logger.warning("%s:%d: skipping post (%s)", path, lineno, e)
    return posts


def main(argv: list[str]) -> int:
    parser = argparse.ArgumentParser(description="Build the incident feed from social posts.")
    parser.add_argument("--query", default="", help="Custom search query (default: built-in city/police/general plan).")
    parser.add_argument("--catalogue", default=None, help="Known-incident catalogue YAML (default: bundled).")
    parser.add_argument("--no-catalogue", action="store_true", help="Skip known incidents.")
    parser.add_argument("--config", default=None, help="Pipeline config YAML.")
    parser.add_argument("--posts-jsonl", default=None, help="Offline mode: cluster posts from this JSONL file.")
    parser.add_argument("--out", default=None, help="Write the JSON payload here instead of stdout.")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING).")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    home = Path(os.environ.get("INCIDENTDESK_HOME") or INCIDENTDESK_HOME)
    config = load_config(Path(args.config).expanduser() if args.config else None)

    if args.posts_jsonl:
        path = Path(args.posts_jsonl).expanduser()
        try:
            posts = read_posts_jsonl(path)
        except OSError as e:
            print(f"error: cannot read posts file {path}: {e}", file=sys.stderr)
            return 2
        incidents = IncidentAssembler(config=config).assemble_posts(posts)
    else:
        try:
            token = load_bearer_token(home=home)
        except RuntimeError as e:
            print(f"error: {e}", file=sys.stderr)
            return 2
        catalogue = () if args.no_catalogue else load_catalogue(Path(args.catalogue).expanduser() if args.catalogue else None)
        with XSearchClient(bearer_token=token) as client:
            assembler = IncidentAssembler(client.search, config=config, catalogue=catalogue)
            incidents = asyncio.run(assembler.assemble(args.query))

    payload = incidents_payload(incidents)
    try:
        validate_payload(payload)
    except ReportSchemaError as e:
        logger.error("%s", e)
        return 1

    if args.out:
        write_payload(Path(args.out).expanduser(), payload)
        print(json.dumps({"ok": True, "out": str(args.out), "incidents": len(incidents)}, ensure_ascii=False))
    else:
        sys.stdout.write(dumps_payload(payload))
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
