"""
Base-36 text encoding for the packed record.
"""
ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(num: int) -> str:
    """Lowercase base-36 digits, no padding; 0 encodes as "0"."""
    if num < 0:
        raise ValueError("Cannot encode a negative accumulator")
    if num == 0:
        return "0"
    result = []
    while num > 0:
        num, remainder = divmod(num, 36)
        result.append(ALPHABET[remainder])
    return "".join(reversed(result))


def from_base36(token: str) -> int:
    """Accumulator integer behind a token."""
    return int(token.strip().lower(), 36)
