"""Cache identities for derivative images."""

from __future__ import annotations

from pathlib import Path


def _field(value: int | None) -> str:
    return "null" if value is None else str(value)


def build_key(source_filename: str, width: int | None, quality: int, max_size_kb: int | None) -> str:
    """Return the cache filename for a derivative of ``source_filename``.

    The key reads as ``<stem>-w<width>-q<quality>-m<maxSize><ext>`` so the
    parameters are visible when browsing the cache directory, e.g.
    ``photo-w400-q85-mnull.jpg``. The original extension is kept last.
    """
    source = Path(Path(source_filename).name)
    return f"{source.stem}-w{_field(width)}-q{quality}-m{_field(max_size_kb)}{source.suffix}"
