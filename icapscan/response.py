import enum
from typing import Dict

from .exception import IcapProtocolError


class Verdict(str, enum.Enum):
    """Outcome of a scan."""

    ALLOWED = "ALLOWED"
    BLOCKED = "BLOCKED"
    UNDETERMINED = "UNDETERMINED"

    def __bool__(self) -> bool:
        return self is Verdict.ALLOWED


class IcapResponse:
    """
    Represents the header block of an ICAP response.
    """

    def __init__(self, status_code: int, status_message: str, headers: Dict[str, str]):
        """
        Initialize ICAP response.

        Args:
            status_code: ICAP status code (e.g., 200, 204)
            status_message: Status message (e.g., "OK", "No Content")
            headers: ICAP response headers, in arrival order
        """
        self.status_code = status_code
        self.status_message = status_message
        self.headers = headers

    @property
    def is_success(self) -> bool:
        """Check if response indicates success."""
        return 200 <= self.status_code < 300

    @property
    def is_continue(self) -> bool:
        """Check if server asked for the rest of the body (100 Continue)."""
        return self.status_code == 100

    @property
    def is_no_modification(self) -> bool:
        """Check if server returned 204 (no modification needed)."""
        return self.status_code == 204

    @classmethod
    def parse(cls, data: bytes) -> "IcapResponse":
        """
        Parse an ICAP response header block.

        The status code is the token between the first and second space of
        the status line. Header lines are read up to the first line that is
        empty or has no colon; a repeated header keeps its last value.

        Args:
            data: Raw header block

        Returns:
            IcapResponse object

        Raises:
            IcapProtocolError: If the status line is malformed.
        """
        lines = data.decode("utf-8", errors="ignore").split("\r\n")
        status_line = lines[0]

        # Parse status line: ICAP/1.0 200 OK
        first = status_line.find(" ")
        second = status_line.find(" ", first + 1) if first != -1 else -1
        if second == -1:
            raise IcapProtocolError(f"Invalid ICAP status line: {status_line!r}")

        code = status_line[first + 1 : second]
        try:
            if not code.isdigit():
                raise ValueError(code)
            status_code = int(code)
        except ValueError:
            raise IcapProtocolError(f"Invalid ICAP status code: {code!r}") from None
        status_message = status_line[second + 1 :]

        headers: Dict[str, str] = {}
        for line in lines[1:]:
            colon = line.find(":")
            if not line or colon == -1:
                break
            value = line[colon + 1 :]
            # Servers write "Name: value"; a value glued to the colon is kept whole
            # instead of losing its first character to a fixed two-character skip.
            if value.startswith(" "):
                value = value[1:]
            headers[line[:colon]] = value

        return cls(status_code, status_message, headers)

    def __repr__(self):
        return f"IcapResponse(status={self.status_code}, message='{self.status_message}')"
