"""
Session Identifier Generator

Session ids are random bytes encoded with the base64url alphabet. The length
is always a multiple of four, so encoded ids never carry "=" padding and can
be validated with a single fixed-length pattern.

A client-presented value that fails validate() could not have been issued
by the generator; callers treat it as "no identity" rather than an error.
"""

import base64
import re
import secrets
from typing import Protocol, runtime_checkable

from session_store.core.exceptions import InvalidConfigurationError

DEFAULT_ID_LENGTH = 48

# 128 bits of entropy, i.e. an identifier length of 24 in base64url
MIN_ENTROPY_BYTES = 16


@runtime_checkable
class SessionIdGenerator(Protocol):
    """Produces and validates session identifiers."""

    def generate(self) -> str:
        """Return a new, unpredictable identifier."""
        ...

    def validate(self, session_id: str) -> bool:
        """Return True if session_id could have been produced by generate()."""
        ...


class Base64UrlSessionIdGenerator:
    """
    Cryptographically random base64url session identifiers.

    Args:
        length: Identifier length in characters. Must be divisible by four
            and decode to at least 16 bytes (128 bits).

    Raises:
        InvalidConfigurationError: If the length is not divisible by four or
            provides less than 128 bits of entropy.

    Example:
        >>> generator = Base64UrlSessionIdGenerator()
        >>> session_id = generator.generate()
        >>> generator.validate(session_id)
        True
    """

    def __init__(self, length: int = DEFAULT_ID_LENGTH) -> None:
        if length <= 0 or length % 4 != 0:
            raise InvalidConfigurationError(
                f"Invalid length ({length}), must be divisible by four",
                field="length",
                value=length,
            )

        self._length = length
        self._bytes = length // 4 * 3

        if self._bytes < MIN_ENTROPY_BYTES:
            raise InvalidConfigurationError(
                f"Invalid length ({length}), must be at least 128 bit of entropy, "
                "i.e. an identifier length of 24 in base64url encoding",
                field="length",
                value=length,
            )

        self._pattern = re.compile(r"[A-Za-z0-9_\-]{%d}" % length)

    @property
    def length(self) -> int:
        """Identifier length in characters."""
        return self._length

    def generate(self) -> str:
        return base64.urlsafe_b64encode(secrets.token_bytes(self._bytes)).decode("ascii")

    def validate(self, session_id: str) -> bool:
        if not isinstance(session_id, str):
            return False
        return self._pattern.fullmatch(session_id) is not None
