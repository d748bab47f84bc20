"""Split a document into blocks that each fit in one webhook message.

Splitting strategy:
1. Cut the text into segments at every blank line, and at a single newline
   right before a heading (``#``, ``##`` or ``###`` followed by a space) so a
   heading is never glued to the end of the previous paragraph.
2. Trim every segment. Empty segments are kept and merged like any other,
   so ordinals in error reports match the source.
3. Greedily merge segments into blocks, left to right. Headings join the
   previous segment with one newline, everything else with a blank line.
"""

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Discord rejects message content longer than this.
MAX_MESSAGE_LENGTH = 2000

_SEGMENT_BOUNDARY = re.compile(r"\n{2,}|\n(?=#{1,3} )")
_HEADING = re.compile(r"^#{1,3} ")

# Characters of context shown on each side of an oversized segment.
_EXCERPT_LENGTH = 40


@dataclass(frozen=True)
class Block:
    """One message worth of document text, in publish order."""

    index: int
    text: str


class BlockTooLargeError(Exception):
    """A single segment does not fit in one message on its own."""

    def __init__(self, index: int, head: str, tail: str):
        super().__init__(
            f"Text block #{index + 1} is too long\n"
            f"Starts with: {head}...\n"
            f"Ends with: ...{tail}"
        )
        self.index = index
        self.head = head
        self.tail = tail


def _separator(current: str, segment: str) -> str:
    if not current:
        return ""
    if _HEADING.match(segment):
        return "\n"
    return "\n\n"


def chunk_document(text: str, max_length: int = MAX_MESSAGE_LENGTH) -> list[Block]:
    """Split ``text`` into ordered blocks no longer than ``max_length``.

    An empty document still produces a single empty block.

    Raises:
        BlockTooLargeError: if one segment is longer than ``max_length``.
    """
    segments = [segment.strip() for segment in _SEGMENT_BOUNDARY.split(text)]

    texts: list[str] = []
    current = ""
    for index, segment in enumerate(segments):
        logger.debug(
            "Segment %d: length %d, current block length %d",
            index,
            len(segment),
            len(current),
        )
        if len(segment) > max_length:
            raise BlockTooLargeError(
                index, segment[:_EXCERPT_LENGTH], segment[-_EXCERPT_LENGTH:]
            )
        separator = _separator(current, segment)
        if len(current) + len(separator) + len(segment) <= max_length:
            current += separator + segment
        else:
            texts.append(current)
            current = segment

    texts.append(current)
    return [Block(index=i, text=block_text) for i, block_text in enumerate(texts)]
