from __future__ import annotations

import re
from dataclasses import dataclass

TOKEN_SYMBOLS = ("BNB", "CMT", "USDT", "BUSD", "WBNB", "DAI")

_TOKEN_ALT = "wbnb|bnb|cmt|usdt|busd|dai"

# plain or comma-grouped ("1,500"); a bare comma never splits a number
_NUM = r"(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?"

_ADDRESS_RE = re.compile(r"0x[a-fA-F0-9]{40}")
_DOLLAR_RE = re.compile(
    rf"\$\s*({_NUM})(?![,.]?\d)(?:\s*({_TOKEN_ALT})\b)?",
    re.IGNORECASE,
)
_AMOUNT_WITH_TOKEN_RE = re.compile(
    rf"(?<![\w.,])({_NUM})\s*({_TOKEN_ALT})\b",
    re.IGNORECASE,
)
_BARE_AMOUNT_RE = re.compile(rf"(?<![\w.,$])({_NUM})(?!\w|[.,]\d)")
_RELATIVE_TIME_RE = re.compile(
    r"\b(?:in|after)\s+(\d+(?:\.\d+)?)\s*(second|sec|minute|min|hour|hr|day)s?\b",
    re.IGNORECASE,
)
_TOMORROW_RE = re.compile(r"\btomorrow\b", re.IGNORECASE)
_THRESHOLD_RE = re.compile(
    rf"(\babove\b|\bbelow\b|\bover\b|\bunder\b|>|<)\s*\$?\s*({_NUM})",
    re.IGNORECASE,
)
_APPROVALS_RE = re.compile(r"\b(\d+)\s+approvals?\b", re.IGNORECASE)
# case-sensitive on purpose: only a Capitalized word is a contact candidate
_NAMED_RECIPIENT_RE = re.compile(r"\b(?:[Tt]o|[Pp]ay|[Ff]or)\s+([A-Z][A-Za-z]*)\b")
_SWAP_FULL_RE = re.compile(
    r"\b(?:swap|exchange|trade)\s+(?:(\d+(?:\.\d+)?)\s*)?([a-z]+)\s+(?:to|for|into)\s+([a-z]+)\b",
    re.IGNORECASE,
)
_SWAP_PAIR_RE = re.compile(
    rf"\b({_TOKEN_ALT})\s+(?:to|for|into)\s+({_TOKEN_ALT})\b",
    re.IGNORECASE,
)

_UNIT_HOURS = {
    "second": 1 / 3600,
    "sec": 1 / 3600,
    "minute": 1 / 60,
    "min": 1 / 60,
    "hour": 1.0,
    "hr": 1.0,
    "day": 24.0,
}

DEFAULT_DELAY_HOURS = 24.0


@dataclass(frozen=True)
class AmountMatch:
    amount: str
    token: str | None


@dataclass(frozen=True)
class ThresholdMatch:
    price: str
    is_above: bool


@dataclass(frozen=True)
class SwapMatch:
    from_token: str
    to_token: str
    amount: str | None = None


def extract_address(text: str) -> str | None:
    m = _ADDRESS_RE.search(text or "")
    return m.group(0) if m else None


def extract_all_addresses(text: str) -> list[str]:
    """All addresses in order of appearance, duplicates kept."""
    return [m.group(0) for m in _ADDRESS_RE.finditer(text or "")]


def _plain(number: str) -> str:
    return number.replace(",", "")


def _mask(text: str, pattern: re.Pattern[str]) -> str:
    return pattern.sub(lambda m: " " * len(m.group(0)), text)


def extract_amount(text: str) -> AmountMatch | None:
    """
    Three tiers, first hit wins:
    1) "$20 BNB"  -> 20 / BNB
    2) "$20"      -> 20 / USDT
    3) "20 BNB" or a bare "20" -> token only when written next to the number
    """
    s = _mask(text or "", _ADDRESS_RE)
    # numbers that belong to a delay, a price condition or an approval count are not amounts
    s = _mask(s, _RELATIVE_TIME_RE)
    s = _mask(s, _THRESHOLD_RE)
    s = _mask(s, _APPROVALS_RE)

    m = _DOLLAR_RE.search(s)
    if m:
        token = m.group(2).upper() if m.group(2) else "USDT"
        return AmountMatch(amount=_plain(m.group(1)), token=token)

    m = _AMOUNT_WITH_TOKEN_RE.search(s)
    if m:
        return AmountMatch(amount=_plain(m.group(1)), token=m.group(2).upper())

    m = _BARE_AMOUNT_RE.search(s)
    if m:
        return AmountMatch(amount=_plain(m.group(1)), token=None)

    return None


def extract_delay_hours(text: str) -> float | None:
    m = _RELATIVE_TIME_RE.search(text or "")
    if m:
        value = float(m.group(1))
        return value * _UNIT_HOURS[m.group(2).lower()]

    if _TOMORROW_RE.search(text or ""):
        return DEFAULT_DELAY_HOURS

    return None


def has_relative_time(text: str) -> bool:
    return _RELATIVE_TIME_RE.search(text or "") is not None


def extract_threshold(text: str) -> ThresholdMatch | None:
    m = _THRESHOLD_RE.search(text or "")
    if not m:
        return None
    word = m.group(1).lower()
    return ThresholdMatch(price=_plain(m.group(2)), is_above=word in ("above", "over", ">"))


def extract_approvals(text: str) -> int | None:
    m = _APPROVALS_RE.search(text or "")
    return int(m.group(1)) if m else None


def extract_named_recipient(text: str) -> str | None:
    for m in _NAMED_RECIPIENT_RE.finditer(text or ""):
        name = m.group(1)
        if name.upper() in TOKEN_SYMBOLS:
            continue
        return name
    return None


def extract_swap(text: str) -> SwapMatch | None:
    s = text or ""

    m = _SWAP_FULL_RE.search(s)
    if m and m.group(1):
        return SwapMatch(
            amount=m.group(1),
            from_token=m.group(2).upper(),
            to_token=m.group(3).upper(),
        )

    if m and m.group(2).upper() in TOKEN_SYMBOLS and m.group(3).upper() in TOKEN_SYMBOLS:
        return SwapMatch(from_token=m.group(2).upper(), to_token=m.group(3).upper())

    m = _SWAP_PAIR_RE.search(s)
    if m:
        return SwapMatch(from_token=m.group(1).upper(), to_token=m.group(2).upper())

    return None
