"""Fluent builder for raw ICAP response header blocks used in tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from icapscan import IcapResponse


class IcapResponseBuilder:
    """
    Fluent builder for the bytes an ICAP server sends back.

    Example:
        # Clean response (204 No Modification)
        raw = IcapResponseBuilder().clean().build()

        # Blocked content
        raw = IcapResponseBuilder().blocked("Trojan.Generic").build()

        # OPTIONS response
        raw = IcapResponseBuilder().options(methods=["RESPMOD"], preview=4).build()
    """

    def __init__(self) -> None:
        self._status_code: int = 204
        self._status_message: str = "No Modification"
        self._headers: dict[str, str] = {}
        self._http_status_line: str | None = None
        self._body: bytes | None = None

    def clean(self) -> IcapResponseBuilder:
        """Configure as 204 No Modification (content is safe)."""
        return self.with_status(204, "No Modification")

    def blocked(self, name: str = "EICAR-Test-Signature") -> IcapResponseBuilder:
        """Configure as 403 Forbidden with X-Virus-ID header."""
        self.with_status(403, "Forbidden")
        self._headers["X-Virus-ID"] = name
        self._headers["X-Infection-Found"] = f"Type=0; Resolution=2; Threat={name};"
        return self

    def options(
        self,
        methods: list[str] | None = None,
        preview: int | None = 1024,
        allow_204: bool = True,
    ) -> IcapResponseBuilder:
        """Configure as OPTIONS response with server capabilities."""
        self.with_status(200, "OK")
        self._headers["Methods"] = ", ".join(methods if methods is not None else ["RESPMOD", "REQMOD"])
        if allow_204:
            self._headers["Allow"] = "204"
        if preview is not None:
            self._headers["Preview"] = str(preview)
            self._headers["Transfer-Preview"] = "*"
        self._headers["Max-Connections"] = "100"
        return self

    def error(
        self,
        code: int = 500,
        message: str = "Internal Server Error",
    ) -> IcapResponseBuilder:
        """Configure as server error."""
        return self.with_status(code, message)

    def modified(
        self,
        body: bytes = b"Access denied",
        status_line: str = "HTTP/1.1 403 Forbidden",
    ) -> IcapResponseBuilder:
        """Configure as 200 OK carrying a replacement HTTP response."""
        return self.with_status(200, "OK").with_body(body, status_line)

    def continue_response(self) -> IcapResponseBuilder:
        """Configure as 100 Continue (for preview mode)."""
        return self.with_status(100, "Continue")

    def with_status(self, code: int, message: str) -> IcapResponseBuilder:
        """Set custom status code and message."""
        self._status_code = code
        self._status_message = message
        return self

    def with_header(self, key: str, value: str) -> IcapResponseBuilder:
        """Add a custom header."""
        self._headers[key] = value
        return self

    def with_body(self, body: bytes, status_line: str = "HTTP/1.1 200 OK") -> IcapResponseBuilder:
        """Encapsulate an HTTP response header and a chunked body."""
        self._http_status_line = status_line
        self._body = body
        return self

    def without_header(self, key: str) -> IcapResponseBuilder:
        """Remove a header set by one of the presets."""
        self._headers.pop(key, None)
        return self

    def build(self) -> bytes:
        """Build the raw response, encapsulated sections included."""
        headers = dict(self._headers)
        encapsulated = b""
        if self._body is not None:
            http_block = (
                f"{self._http_status_line}\r\nContent-Length: {len(self._body)}\r\n\r\n"
            ).encode("utf-8")
            headers["Encapsulated"] = f"res-hdr=0, res-body={len(http_block)}"
            encapsulated = http_block
            if self._body:
                encapsulated += f"{len(self._body):x}\r\n".encode() + self._body + b"\r\n"
            encapsulated += b"0\r\n\r\n"
        lines = [f"ICAP/1.0 {self._status_code} {self._status_message}"]
        lines.extend(f"{key}: {value}" for key, value in headers.items())
        return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8") + encapsulated

    def parse(self) -> IcapResponse:
        """Build the response and parse it into an IcapResponse."""
        from icapscan import IcapResponse

        return IcapResponse.parse(self.build())
