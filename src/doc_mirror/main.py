"""Command-line entry point: mirror one document onto the webhook channel.

A run is a single pass:
  1. Resolve the ID store (unknown methods fail before any network call).
  2. Read and chunk the document (oversized blocks fail here too).
  3. Load the previously published IDs and publish.
  4. On a fresh publish, write the IDs to the output file and save them.

Exit code 0 means the channel matches the document, 1 means it might not.
"""

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

from pydantic import ValidationError

from doc_mirror.chunker import BlockTooLargeError, chunk_document
from doc_mirror.config import Settings, load_settings
from doc_mirror.publisher import Failed, MessageFetchError, Publisher, Unchanged
from doc_mirror.storage import UnknownStorageMethodError, build_identifier_store
from doc_mirror.webhook_client import WebhookClient

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s %(levelname)-5s %(name)s: %(message)s"


async def run(settings: Settings) -> int:
    """Execute one mirror run and return the process exit code."""
    client = WebhookClient(settings.webhook_url)

    try:
        store = build_identifier_store(settings, client)
        document = settings.document_path.read_text(encoding="utf-8")
        blocks = chunk_document(document)
    except (UnknownStorageMethodError, BlockTooLargeError) as exc:
        logger.error("%s", exc)
        return 1
    except OSError as exc:
        logger.error("Couldn't read document %s: %s", settings.document_path, exc)
        return 1

    logger.info("Document split into %d block(s)", len(blocks))

    prior_ids = await store.load()
    publisher = Publisher(client, max_concurrency=settings.max_concurrency)

    try:
        result = await publisher.publish(blocks, prior_ids)
    except MessageFetchError as exc:
        logger.error("%s: %s", exc, exc.__cause__)
        return 1

    if isinstance(result, Unchanged):
        return 0
    if isinstance(result, Failed):
        logger.error("Publishing failed: %s", result.reason)
        return 1

    message_ids = result.message_ids
    settings.output_path.write_text("\n".join(message_ids), encoding="utf-8")
    try:
        saved = await store.save(message_ids)
    except Exception:
        logger.exception("Messages were published but their IDs could not be stored")
        return 1
    if not saved:
        logger.info("Storage method %s keeps no record", settings.storage_method)
    return 0


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="doc-mirror",
        description="Mirror a text document onto a run of Discord webhook messages",
    )
    parser.add_argument("--document", dest="document_path", help="document to mirror")
    parser.add_argument(
        "--storage-method",
        dest="storage_method",
        help="where published message IDs are kept (none, git, message, artifact)",
    )
    parser.add_argument("--output", dest="output_path", help="file receiving the new IDs")
    parser.add_argument("--log-level", dest="log_level", help="DEBUG, INFO, WARNING, ...")
    return parser.parse_args(argv)


def cli(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    try:
        settings = load_settings(**vars(args))
    except ValidationError as exc:
        logging.basicConfig(format=_LOG_FORMAT)
        logger.error("Invalid configuration: %s", exc)
        return 1

    logging.basicConfig(level=settings.log_level.upper(), format=_LOG_FORMAT)

    try:
        return asyncio.run(run(settings))
    except Exception:
        logger.exception("Mirror run failed")
        return 1


if __name__ == "__main__":
    sys.exit(cli())
