"""Import a single Micropub JSON entry into the configured database.

Reads one JSON document from a file or stdin, normalizes it the same way the
Micropub endpoint does and stores it with its original bytes.
"""
from __future__ import annotations

import argparse
import logging
import sys

from micropub_site.core.errors import MicropubError
from micropub_site.core.settings import settings
from micropub_site.db.session import SessionLocal, create_tables
from micropub_site.services.normalizer import JSON_MEDIA_TYPE, normalize
from micropub_site.services.post_service import PostStore

IMPORT_CLIENT_ID = "micropub/import_entry"

logger = logging.getLogger(__name__)


def import_entry(body: bytes, client_id: str = IMPORT_CLIENT_ID) -> str:
    """Store one JSON entry and return its slug."""
    post_input = normalize(body, JSON_MEDIA_TYPE)
    post_input = post_input.model_copy(update={"client_id": client_id})
    with SessionLocal() as session:
        return PostStore(session).create_post(post_input, body).slug


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Import a Micropub JSON entry")
    parser.add_argument(
        "path",
        nargs="?",
        default="-",
        help="File holding the JSON entry; '-' reads stdin (default).",
    )
    parser.add_argument(
        "--client-id",
        default=IMPORT_CLIENT_ID,
        help="Client identifier recorded on the imported post.",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before importing.",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=settings.log_level.upper())

    if args.path == "-":
        body = sys.stdin.buffer.read()
    else:
        with open(args.path, "rb") as handle:
            body = handle.read()

    if args.create_tables:
        create_tables()

    try:
        slug = import_entry(body, args.client_id)
    except MicropubError as exc:
        print(f"[import_entry] {exc.error_code}: {exc.message}", file=sys.stderr)
        return 1

    print(settings.post_url(slug))
    return 0


if __name__ == "__main__":
    sys.exit(main())
