"""Decide whether the channel needs a fresh copy of the document."""

import logging
from collections.abc import Sequence

from doc_mirror.chunker import Block

logger = logging.getLogger(__name__)


def should_republish(existing_messages: Sequence[str], blocks: Sequence[Block]) -> bool:
    """Return True unless every block matches the message at the same position.

    Comparison is exact. Discord may normalise some unicode on its side, in
    which case an unchanged document is republished; that is accepted.
    """
    if len(existing_messages) != len(blocks):
        logger.info("Number of message blocks is different, sending messages")
        logger.debug(
            "Document blocks: %d, fetched messages: %d",
            len(blocks),
            len(existing_messages),
        )
        return True

    for fetched, block in zip(existing_messages, blocks):
        if fetched == block.text:
            continue
        logger.info("Block #%d is not equal, sending messages", block.index)
        logger.debug("Block read:\n%s", block.text)
        logger.debug("Block fetched:\n%s", fetched)
        return True

    return False
