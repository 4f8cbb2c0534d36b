"""
Abstract Decoder Interface

Every source decoder inherits from BatchDecoder and produces ImportBatch
objects. The reconciliation engine only ever sees ImportBatch, never a
source-specific format.
"""

import logging
import re

from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from nocturne.constants import SourceType
from nocturne.exceptions import DecodeFailure
from nocturne.models.unified import ImportBatch

logger = logging.getLogger(__name__)


class DecoderMetadata(BaseModel):
    """Metadata about a decoder implementation."""

    decoder_id: str = Field(description="Unique decoder identifier")
    decoder_version: str = Field(description="Decoder version")
    friendly_name: str = Field(description="Name shown to the user")
    source_type: SourceType = Field(description="Source type of decoded sessions")
    filename_pattern: str = Field(
        description="Case-insensitive regex an input filename must match"
    )
    file_type_filters: list[str] = Field(
        default_factory=list, description="File extensions, e.g. ['*.csv']"
    )
    description: str = Field(default="", description="Decoder description")


class BatchDecoder(ABC):
    """
    Abstract base class for all source decoders.

    Usage Example:
        class MyDecoder(BatchDecoder):
            def get_metadata(self):
                return DecoderMetadata(decoder_id="my_csv", ...)

            def decode(self, path, options=None):
                return ImportBatch(source=path.name, ...)
    """

    def __init__(self) -> None:
        self._metadata = self.get_metadata()
        self._filename_regex = re.compile(
            self._metadata.filename_pattern, re.IGNORECASE
        )

    @abstractmethod
    def get_metadata(self) -> DecoderMetadata:
        """Return metadata about this decoder."""

    @abstractmethod
    def decode(self, path: Path, options: Any | None = None) -> ImportBatch:
        """
        Decode one input into an ImportBatch.

        Args:
            path: Input file
            options: Decoder-specific options model

        Returns:
            ImportBatch holding the decoded sessions and events

        Raises:
            DecodeFailure: If the input cannot be read or decoded
        """

    def matches(self, path: Path) -> bool:
        """Return True if the filename follows this decoder's naming convention."""
        return self._filename_regex.search(Path(path).name) is not None

    @property
    def metadata(self) -> DecoderMetadata:
        return self._metadata

    @property
    def decoder_id(self) -> str:
        return self._metadata.decoder_id

    @property
    def source_type(self) -> SourceType:
        return self._metadata.source_type

    @property
    def friendly_name(self) -> str:
        return self._metadata.friendly_name

    def __str__(self) -> str:
        return f"{self.decoder_id} (v{self._metadata.decoder_version}): {self.friendly_name}"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} id={self.decoder_id}>"


def decode_inputs(
    decoder: BatchDecoder,
    paths: Iterable[Path],
    options: Any | None = None,
) -> tuple[list[ImportBatch], list[DecodeFailure]]:
    """
    Decode several inputs, isolating failures per input.

    An input that fails to decode is logged and reported as a diagnostic;
    the remaining inputs are still decoded. Batches without sessions are
    dropped.

    Args:
        decoder: Decoder to apply to every input
        paths: Input files
        options: Decoder-specific options

    Returns:
        Tuple of (decoded batches, decode failures)
    """
    batches: list[ImportBatch] = []
    failures: list[DecodeFailure] = []

    for path in paths:
        path = Path(path)
        if not decoder.matches(path):
            failure = DecodeFailure(
                f"'{path.name}' does not match the file naming convention for "
                f"{decoder.friendly_name}",
                path,
            )
            logger.warning(str(failure))
            failures.append(failure)
            continue

        try:
            batch = decoder.decode(path, options)
        except DecodeFailure as e:
            logger.warning(f"Skipping {path.name}: {e}")
            failures.append(e)
            continue

        if not batch.sessions:
            logger.info(f"No sessions found in {path.name}")
            continue

        logger.debug(
            f"Decoded {path.name}: {len(batch.sessions)} sessions, "
            f"{len(batch.events)} events"
        )
        batches.append(batch)

    return batches, failures
