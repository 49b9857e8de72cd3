"""Identifier helpers.

Rows, connections and relay workers are all keyed by ULIDs: 26-char
strings that sort by creation time.
"""

import ulid


def generate_ulid() -> str:
    return str(ulid.ULID())
