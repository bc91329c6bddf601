"""
Session Record Serializer

Wire format shared by every process reading or writing the same backend:

    +--------+-----------------------------------------------+
    | flags  | payload                                       |
    | 1 byte | JSON record, raw DEFLATE'd if flags & 0x01    |
    +--------+-----------------------------------------------+

The JSON encoding is deterministic (sorted keys, compact separators, UTF-8),
so equal records always produce equal bytes. Payloads strictly larger than
the compression threshold are deflated (raw stream, no zlib header) and the
FLAG_COMPRESSED bit is set; smaller payloads are stored verbatim with the
bit clear.
"""

import json
import zlib
from typing import Any, Optional, Protocol, Union, runtime_checkable

from session_store.core.config import get_settings
from session_store.core.exceptions import SerializationError

# Values a session record may hold: the JSON value model
SessionValue = Union[
    None, bool, int, float, str, list["SessionValue"], dict[str, "SessionValue"]
]
SessionRecord = dict[str, SessionValue]

FLAG_COMPRESSED = 0x01
COMPRESSION_THRESHOLD = 256
COMPRESSION_LEVEL = 1

# Raw DEFLATE stream without zlib header or checksum
_WBITS = -zlib.MAX_WBITS

_SCALAR_TYPES = (str, int, float, bool)


def _check_value(value: Any, path: str) -> None:
    """Reject anything json.dumps would coerce instead of round-tripping."""
    if value is None or isinstance(value, _SCALAR_TYPES):
        return

    if isinstance(value, list):
        for index, item in enumerate(value):
            _check_value(item, f"{path}[{index}]")
        return

    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise SerializationError(
                    f"Session record keys must be strings, got {type(key).__name__} at {path}"
                )
            _check_value(item, f"{path}.{key}")
        return

    raise SerializationError(
        f"Unsupported session value of type {type(value).__name__} at {path}"
    )


@runtime_checkable
class Serializer(Protocol):
    """Encodes a session record to bytes and back."""

    def serialize(self, record: SessionRecord) -> bytes:
        ...

    def unserialize(self, data: bytes) -> SessionRecord:
        ...


class CompressingJsonSerializer:
    """
    Deterministic JSON serializer with a one-byte header and optional deflate.

    Args:
        threshold: Encoded payloads longer than this many bytes are compressed.
            Defaults to settings.compression_threshold.
        level: zlib compression level. Defaults to settings.compression_level.

    Example:
        >>> serializer = CompressingJsonSerializer()
        >>> serializer.unserialize(serializer.serialize({"foo": "bar"}))
        {'foo': 'bar'}
    """

    def __init__(
        self,
        threshold: Optional[int] = None,
        level: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self._threshold = threshold if threshold is not None else settings.compression_threshold
        self._level = level if level is not None else settings.compression_level

    @property
    def threshold(self) -> int:
        return self._threshold

    def serialize(self, record: SessionRecord) -> bytes:
        """
        Encode a record.

        Raises:
            SerializationError: If the record is not a mapping of string keys
                to JSON-representable values (NaN and infinity included).
        """
        if not isinstance(record, dict):
            raise SerializationError(
                f"Session record must be a dict, got {type(record).__name__}"
            )
        _check_value(record, "record")

        try:
            payload = json.dumps(
                record,
                sort_keys=True,
                separators=(",", ":"),
                ensure_ascii=False,
                allow_nan=False,
            ).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Couldn't serialize session record: {e}") from e

        flags = 0

        if len(payload) > self._threshold:
            compressor = zlib.compressobj(self._level, zlib.DEFLATED, _WBITS)
            payload = compressor.compress(payload) + compressor.flush()
            flags |= FLAG_COMPRESSED

        return bytes([flags & 0xFF]) + payload

    def unserialize(self, data: bytes) -> SessionRecord:
        """
        Decode a record produced by serialize().

        Raises:
            SerializationError: On empty input, unknown header flags, a
                corrupt deflate stream, invalid UTF-8/JSON, or a payload
                that does not decode to an object.
        """
        if not data:
            raise SerializationError("Couldn't unserialize session record: empty input")

        flags = data[0]
        payload = bytes(data[1:])

        if flags & ~FLAG_COMPRESSED:
            raise SerializationError(
                f"Couldn't unserialize session record: unknown header flags {flags:#04x}"
            )

        if flags & FLAG_COMPRESSED:
            try:
                payload = zlib.decompress(payload, _WBITS)
            except zlib.error as e:
                raise SerializationError(
                    f"Couldn't inflate session record: {e}"
                ) from e

        try:
            record: Any = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise SerializationError(f"Couldn't unserialize session record: {e}") from e

        if not isinstance(record, dict):
            raise SerializationError(
                f"Couldn't unserialize session record: expected object, got {type(record).__name__}"
            )

        return record
