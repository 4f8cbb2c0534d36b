"""
Decoder Registry

Central registry of source decoders, looked up by ID.
"""

import logging

from nocturne.importers.base import BatchDecoder

logger = logging.getLogger(__name__)


class DecoderRegistry:
    """
    Global registry for all source decoders.

    Usage:
        register_all_decoders()
        decoder = decoder_registry.get("oximetry_csv")
        batches, failures = decode_inputs(decoder, paths)
    """

    def __init__(self) -> None:
        self._decoders: dict[str, BatchDecoder] = {}

    def register(self, decoder: BatchDecoder) -> None:
        """
        Register a new decoder.

        Raises:
            ValueError: If the decoder ID is already registered
        """
        if decoder.decoder_id in self._decoders:
            existing = self._decoders[decoder.decoder_id]
            raise ValueError(
                f"Decoder ID '{decoder.decoder_id}' already registered by "
                f"{existing.__class__.__name__}"
            )
        self._decoders[decoder.decoder_id] = decoder
        logger.debug(f"Registered decoder: {decoder}")

    def is_registered(self, decoder_id: str) -> bool:
        return decoder_id in self._decoders

    def get(self, decoder_id: str) -> BatchDecoder:
        """
        Look up a decoder by ID.

        Raises:
            KeyError: If no decoder has that ID
        """
        try:
            return self._decoders[decoder_id]
        except KeyError:
            available = ", ".join(sorted(self._decoders)) or "none"
            raise KeyError(
                f"Unknown decoder '{decoder_id}' (available: {available})"
            ) from None

    def list_decoders(self) -> list[BatchDecoder]:
        return list(self._decoders.values())


decoder_registry = DecoderRegistry()


def register_all_decoders() -> None:
    """
    Register every built-in decoder with the global registry.

    Safe to call more than once; already-registered decoders are skipped.
    """
    from nocturne.importers.health_api import HealthApiSleepDecoder
    from nocturne.importers.oximetry_csv import OximetryCsvDecoder

    for decoder in (OximetryCsvDecoder(), HealthApiSleepDecoder()):
        if not decoder_registry.is_registered(decoder.decoder_id):
            decoder_registry.register(decoder)

    logger.debug(
        f"Decoder registration complete: {len(decoder_registry.list_decoders())} "
        "decoder(s) available"
    )
