from powgate.schemas.protocol import Request, Response, parse_request

__all__ = [
    "Request",
    "Response",
    "parse_request",
]
