"""Column codecs: float32 embedding blobs, JSON tag lists and ISO-8601 timestamps."""

import json
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

import numpy as np
from pydantic_core import core_schema

from clipsage.core.errors import CodecError

# Little-endian IEEE-754 single precision.
_FLOAT32_LE = np.dtype("<f4")
_UINT32_LE = np.dtype("<u4")


class Float32Vector(list):
    """List of floats decoded from a float32 blob, carrying the source bits.

    Widening float32 to Python floats quiets signalling NaNs, so ``raw`` keeps
    the original array and ``encode_vector`` re-emits its NaN payloads as-is.
    """

    def __init__(self, values: Sequence[float] = (), raw: Optional[np.ndarray] = None):
        super().__init__(values)
        self.raw = raw

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any):
        return core_schema.no_info_wrap_validator_function(
            cls._validate, core_schema.list_schema(core_schema.float_schema())
        )

    @classmethod
    def _validate(cls, value: Any, handler: Any) -> "Float32Vector":
        if isinstance(value, cls):
            return value
        return cls(handler(value))


def _nan_mask(bits: np.ndarray) -> np.ndarray:
    return ((bits & 0x7F800000) == 0x7F800000) & ((bits & 0x007FFFFF) != 0)


def encode_vector(vector: Sequence[float]) -> bytes:
    """Encode N floats as 4N little-endian float32 bytes, in order."""
    array = np.array(vector, dtype=_FLOAT32_LE)
    raw = getattr(vector, "raw", None)
    if raw is not None and len(raw) == len(array):
        bits = array.view(_UINT32_LE)
        raw_bits = raw.view(_UINT32_LE)
        # NaNs that survived decoding keep their original payload bits
        keep = _nan_mask(bits) & _nan_mask(raw_bits)
        bits[keep] = raw_bits[keep]
    return array.tobytes()


def decode_vector(blob: bytes) -> Float32Vector:
    """Decode a float32 blob back into a list of floats."""
    if len(blob) % _FLOAT32_LE.itemsize != 0:
        raise CodecError(
            f"Embedding blob length {len(blob)} is not a multiple of "
            f"{_FLOAT32_LE.itemsize}"
        )
    raw = np.frombuffer(blob, dtype=_FLOAT32_LE)
    return Float32Vector(raw.tolist(), raw=raw)


def encode_tags(tags: Sequence[str]) -> str:
    return json.dumps(list(tags), ensure_ascii=False)


def decode_tags(text: str) -> List[str]:
    """Parse the JSON tag column. Anything but a list of strings is corrupt."""
    try:
        tags = json.loads(text)
    except (TypeError, json.JSONDecodeError) as e:
        raise CodecError(f"Malformed tags column: {text!r}") from e

    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        raise CodecError(f"Tags column is not a list of strings: {text!r}")
    return tags


def encode_timestamp(value: datetime) -> str:
    """UTC ISO-8601 with fixed microsecond precision so text order is time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def decode_timestamp(text: str) -> datetime:
    try:
        value = datetime.fromisoformat(text)
    except (TypeError, ValueError) as e:
        raise CodecError(f"Malformed timestamp column: {text!r}") from e

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value
