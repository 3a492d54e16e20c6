from http import HTTPStatus

from pydantic import BaseModel, Field, ValidationError

from powgate.errors import MalformedRequest, ProtocolError

# Trailing artifact every client request carries after its payload
REQUEST_SUFFIX = " \n"


class Request(BaseModel):
    op: str = Field(..., description="Operation name")
    payload: str = ""

    def to_line(self) -> str:
        return f"{self.op} {self.payload}{REQUEST_SUFFIX}"


class Response(BaseModel):
    code: int = Field(..., ge=100, le=599)
    body: str = ""

    @classmethod
    def ok(cls, body: str) -> "Response":
        return cls(code=int(HTTPStatus.OK), body=body)

    @classmethod
    def error(cls, body: str) -> "Response":
        return cls(code=int(HTTPStatus.INTERNAL_SERVER_ERROR), body=body)

    @property
    def is_ok(self) -> bool:
        return self.code == HTTPStatus.OK

    def to_line(self) -> str:
        # A body must never span lines
        body = " ".join(self.body.splitlines())
        return f"{self.code} {body}\n"

    @classmethod
    def from_line(cls, line: str) -> "Response":
        """Parse a ``<code> <body>`` response line."""
        row = line.removesuffix("\n")
        code, sep, body = row.partition(" ")
        if not sep:
            raise ProtocolError(f"wrong response: {row}")
        if not (code.isascii() and code.isdigit()):
            raise ProtocolError(f"parsing code {code}")
        try:
            return cls(code=int(code), body=body)
        except ValidationError as e:
            raise ProtocolError(f"wrong response code {code}") from e


def parse_request(line: str) -> Request:
    """
    Split a raw request line into operation name and payload.

    The operation name is everything before the first space. Exactly one
    trailing " \\n" is stripped from the payload, nothing else.
    """
    op, sep, rest = line.partition(" ")
    if not sep:
        raise MalformedRequest(f"wrong request format {line!r}")
    return Request(op=op, payload=rest.removesuffix(REQUEST_SUFFIX))
