"""Static quote corpus served as the protected resource."""

import secrets
from importlib import resources


def load_quotes(name: str = "quotes.txt") -> list[str]:
    text = (resources.files("powgate") / "data" / name).read_text(encoding="utf-8")
    return [line.strip() for line in text.splitlines() if line.strip()]


class QuoteBook:
    def __init__(self, quotes: list[str] | None = None):
        self._quotes = tuple(quotes if quotes is not None else load_quotes())
        if not self._quotes:
            raise ValueError("Quote corpus is empty")

    def get(self) -> str:
        """Pick a quote uniformly at random."""
        return secrets.choice(self._quotes)

    def __len__(self) -> int:
        return len(self._quotes)
