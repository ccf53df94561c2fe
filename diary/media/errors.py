"""Exceptions raised by the derivative image cache."""


class MediaError(Exception):
    """Base class for derivative processing failures."""


class DecodeError(MediaError):
    """The original bytes are not a decodable image of a supported format."""


class StorageError(MediaError):
    """A derivative could not be written to the cache directory."""
