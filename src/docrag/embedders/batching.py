"""Group texts into embedding requests that respect provider limits."""

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class Batch:
    """A run of consecutive texts sent in one embedding request."""

    start: int
    texts: list[str] = field(default_factory=list)
    total_length: int = 0
    oversized: bool = False

    def __len__(self) -> int:
        return len(self.texts)


def plan_batches(texts: list[str], max_count: int, max_length: int) -> list[Batch]:
    """Partition texts, in order, into batches under both limits.

    Greedy left to right: a text joins the current batch if the batch stays
    within ``max_count`` items and ``max_length`` characters, otherwise it
    opens a new batch. A text longer than ``max_length`` on its own ends up
    alone in a batch marked ``oversized``.

    Args:
        texts: Texts in submission order
        max_count: Most texts allowed in one batch
        max_length: Most characters allowed in one batch

    Returns:
        Batches whose texts, concatenated, equal the input
    """
    if max_count < 1 or max_length < 1:
        raise ValueError("max_count and max_length must be positive")

    batches: list[Batch] = []
    current: Batch | None = None

    for index, text in enumerate(texts):
        length = len(text)

        if (
            current is not None
            and len(current) < max_count
            and current.total_length + length <= max_length
        ):
            current.texts.append(text)
            current.total_length += length
            continue

        current = Batch(start=index, texts=[text], total_length=length)
        batches.append(current)

        if length > max_length:
            current.oversized = True
            logger.warning(
                "Text %d is %d chars, over the %d char batch limit; sending it alone",
                index,
                length,
                max_length,
            )

    return batches
