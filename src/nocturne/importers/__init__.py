"""
Source decoders.

Each decoder turns one raw input (a pulse-oximeter export, a health-API
payload) into an ImportBatch for the reconciliation engine.
"""

from nocturne.importers.base import BatchDecoder, DecoderMetadata, decode_inputs
from nocturne.importers.registry import decoder_registry, register_all_decoders

__all__ = [
    "BatchDecoder",
    "DecoderMetadata",
    "decode_inputs",
    "decoder_registry",
    "register_all_decoders",
]
