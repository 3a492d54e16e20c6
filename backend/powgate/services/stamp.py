"""
Hashcash stamp codec.

A challenge looks like ``1:24:2026-10-18:127.0.0.1::q83vEjRWeJA=:`` and a
solved stamp appends ``:<counter>`` to it, giving eight colon separated fields.
"""

import base64
from datetime import date

from powgate.errors import InvalidDifficulty, MalformedStamp

VERSION = 1
DATE_FORMAT = "%Y-%m-%d"
DATE_LENGTH = len("YYYY-MM-DD")
SEPARATOR = ":"

CHALLENGE_FIELDS = 7
SOLVED_FIELDS = 8

MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 255

# Field positions
VERSION_FIELD = 0
DIFFICULTY_FIELD = 1
DATE_FIELD = 2
RESOURCE_FIELD = 3
EXTENSION_FIELD = 4
NONCE_FIELD = 5
COUNTER_FIELD = 7


def encode(version: int, difficulty: int, day: date, resource: str, nonce: bytes) -> str:
    """Build the canonical unsolved stamp text."""
    return "{}:{}:{}:{}::{}:".format(
        version,
        difficulty,
        day.strftime(DATE_FORMAT),
        resource,
        base64.b64encode(nonce).decode("ascii"),
    )


def split_fields(text: str) -> list[str]:
    """Split a solved stamp into its eight fields."""
    fields = text.split(SEPARATOR)
    if len(fields) != SOLVED_FIELDS:
        raise MalformedStamp(f"wrong hashcash len {len(fields)}")
    return fields


def check_difficulty(bits: int) -> int:
    if not MIN_DIFFICULTY <= bits <= MAX_DIFFICULTY:
        raise InvalidDifficulty(
            f"difficulty {bits} outside {MIN_DIFFICULTY}..{MAX_DIFFICULTY}"
        )
    return bits


def parse_difficulty(text: str) -> int:
    """
    Extract the difficulty claimed by a challenge or a solved stamp.

    Raises MalformedStamp on a wrong field count and InvalidDifficulty when
    the field is not an integer in the supported range.
    """
    fields = text.split(SEPARATOR)
    if len(fields) not in (CHALLENGE_FIELDS, SOLVED_FIELDS):
        raise MalformedStamp(f"wrong hashcash len {len(fields)}")

    raw = fields[DIFFICULTY_FIELD]
    if not (raw.isascii() and raw.isdigit()):
        raise InvalidDifficulty(f"can't parse {raw!r} to int")

    return check_difficulty(int(raw))
