"""Payload sources handed to a scan.

A source knows its size up front and is read sequentially. A scan owns the
source for its duration and closes it when the scan ends, whichever way it
ends.
"""

import io
import mimetypes
import os
from pathlib import Path
from typing import Any, BinaryIO, Optional, Protocol, Union

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class PayloadSource(Protocol):
    content_type: str

    def size(self) -> int: ...

    def read(self, max_len: int) -> bytes: ...

    def close(self) -> None: ...

    def __enter__(self) -> "PayloadSource": ...

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool: ...


class StreamSource:
    """
    Wraps an open binary stream.

    Args:
        stream: File-like object (must support read())
        size: Number of bytes the stream will yield. If omitted, it is taken
            from the remaining length of a seekable stream.
        content_type: Content-Type of the payload
        close_stream: Whether closing the source closes ``stream``
    """

    def __init__(
        self,
        stream: BinaryIO,
        size: Optional[int] = None,
        content_type: str = DEFAULT_CONTENT_TYPE,
        close_stream: bool = True,
    ) -> None:
        if size is None:
            size = _remaining_length(stream)
        self._stream = stream
        self._size = size
        self._close_stream = close_stream
        self.content_type = content_type

    def size(self) -> int:
        return self._size

    def read(self, max_len: int) -> bytes:
        return self._stream.read(max_len)

    def close(self) -> None:
        if self._close_stream:
            self._stream.close()

    def __enter__(self) -> "StreamSource":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool:
        self.close()
        return False


class BytesSource(StreamSource):
    """Payload held in memory."""

    def __init__(self, data: bytes, content_type: str = DEFAULT_CONTENT_TYPE) -> None:
        super().__init__(io.BytesIO(data), size=len(data), content_type=content_type)


class FileSource(StreamSource):
    """
    Payload read from a file on disk.

    The content type is guessed from the file name when not given.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
    """

    def __init__(self, path: Union[str, Path], content_type: Optional[str] = None) -> None:
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        if content_type is None:
            content_type = mimetypes.guess_type(path.name)[0] or DEFAULT_CONTENT_TYPE
        self.path = path
        stream = path.open("rb")
        super().__init__(stream, size=os.fstat(stream.fileno()).st_size, content_type=content_type)


def _remaining_length(stream: BinaryIO) -> int:
    try:
        position = stream.tell()
        end = stream.seek(0, io.SEEK_END)
        stream.seek(position)
    except (AttributeError, OSError, ValueError) as e:
        raise ValueError("size is required for streams that cannot seek") from e
    return end - position
