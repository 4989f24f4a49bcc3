"""Field-level encryption applied at the storage boundary.

The storage adapter encodes sensitive columns before they are written and
decodes them after they are loaded; the engine only ever sees plaintext.
"""

import logging
from typing import Protocol

from cryptography.fernet import Fernet, InvalidToken

from agenda.core import config

logger = logging.getLogger(__name__)


class FieldCodec(Protocol):
    def encode(self, value: str | None) -> str | None: ...

    def decode(self, value: str | None) -> str | None: ...


class PlainCodec:
    def encode(self, value: str | None) -> str | None:
        return value

    def decode(self, value: str | None) -> str | None:
        return value


class FernetCodec:
    def __init__(self, key: str | bytes):
        self._fernet = Fernet(key)

    def encode(self, value: str | None) -> str | None:
        if not value:
            return value
        return self._fernet.encrypt(value.encode('utf-8')).decode('ascii')

    def decode(self, value: str | None) -> str | None:
        if not value:
            return value
        try:
            return self._fernet.decrypt(value.encode('ascii')).decode('utf-8')
        except (InvalidToken, UnicodeError):
            logger.warning('Could not decrypt a stored field; returning it blank.')
            return ''


def build_codec(key: str | None = None) -> FieldCodec:
    key = config.ENCRYPTION_KEY if key is None else key
    if not key:
        return PlainCodec()
    return FernetCodec(key)
