from typing import Protocol

import structlog

from powgate.errors import PowGateError
from powgate.schemas.protocol import Response
from powgate.server.dispatcher import DispatcherBuilder
from powgate.services.pow_service import ProofOfWork

logger = structlog.get_logger()

CHALLENGE_OP = "challenge"
GET_QUOTE_OP = "get_quote"


class QuoteProvider(Protocol):
    def get(self) -> str: ...


class QuoteHandlers:
    """Request handlers gating the quote corpus behind proof of work."""

    def __init__(self, quotes: QuoteProvider, pow_engine: ProofOfWork):
        self.quotes = quotes
        self.pow = pow_engine

    def challenge(self, payload: str, sender: str) -> Response:
        """
        Issue a proof-of-work challenge bound to the sender's address.

        The payload is ignored.
        """
        try:
            header = self.pow.issue_challenge(sender)
        except PowGateError as e:
            logger.error("challenge_failed", error=str(e))
            return Response.error(str(e))

        logger.info("challenge_created", header=header, difficulty=self.pow.bits)
        return Response.ok(header)

    def get_quote(self, payload: str, sender: str) -> Response:
        """Redeem a solved stamp for a random quote."""
        try:
            self.pow.verify(payload)
        except PowGateError as e:
            logger.warning("hash_verify_failed", error=str(e), error_type=type(e).__name__)
            return Response.error(str(e))

        logger.info("hash_verify_succeeded")
        return Response.ok(self.quotes.get())

    def register(self, builder: DispatcherBuilder) -> DispatcherBuilder:
        return builder.register_handler(CHALLENGE_OP, self.challenge).register_handler(
            GET_QUOTE_OP, self.get_quote
        )
