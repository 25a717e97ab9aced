"""Payload decoders producing :class:`profdump.models.Record` values."""
from profdump.decode.otlp_json import decode_payload, decode_request

__all__ = ["decode_payload", "decode_request"]
