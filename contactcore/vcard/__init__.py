"""Card codec: decode card text into contacts and encode contacts back."""

from .decoder import VCardDecoder, decode, extract_type, parse_parameters
from .encoder import VCardEncoder, encode, escape_value

__all__ = [
    "VCardDecoder",
    "VCardEncoder",
    "decode",
    "encode",
    "escape_value",
    "extract_type",
    "parse_parameters",
]
