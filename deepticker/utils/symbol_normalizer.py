import re

_SYMBOL_PATTERN = re.compile(r"^[A-Za-z0-9.^=:_-]{1,16}$")
_TICKER_LIKE_PATTERN = re.compile(r"^[A-Za-z0-9.:-]{1,12}$")


def normalize_symbol(symbol: str) -> str:
    cleaned = (symbol or "").strip().upper()
    if not cleaned or not _SYMBOL_PATTERN.match(cleaned):
        raise ValueError("invalid symbol")
    return cleaned


def parse_symbol_list(raw: str) -> list[str]:
    """Split a comma separated query value into normalized, de-duplicated symbols."""
    seen: dict[str, None] = {}
    for part in raw.split(","):
        if part.strip():
            seen.setdefault(normalize_symbol(part), None)
    return list(seen)


def looks_like_ticker(query: str) -> bool:
    """Short alphanumeric strings, optionally with '.', ':' or '-' (BRK.B, TSX:RY)."""
    return bool(_TICKER_LIKE_PATTERN.match((query or "").strip()))
