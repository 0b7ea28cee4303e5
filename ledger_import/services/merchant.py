"""Merchant key normalization.

Turns a noisy bank/export descriptor such as ``"SQ *BLUE BOTTLE #2684 OAKLAND CA"``
into a stable lookup key (``"BLUE BOTTLE"``) and a human-facing display name.
"""

import re

# Well-known descriptors that are noisier than any token rule can fix.
CANONICAL_REWRITES = [
    ("APPLE.COM/BILL", "APPLE SERVICES"),
    ("ITUNES.COM/BILL", "APPLE SERVICES"),
    ("APPLE CASH", "APPLE CASH"),
]

PROVIDER_WRAPPERS = [
    re.compile(r"^\s*(SQ|TST)\s*\*+\s*", re.IGNORECASE),
    re.compile(r"^\s*(PAYPAL|VENMO|CASH\s*APP|CASHAPP|ZELLE)\s*\*+\s*", re.IGNORECASE),
]

EXPORT_PREFIXES = [
    "recurring", "recur", "debit card purchase", "debit card", "card purchase",
    "purchase", "pos", "online", "visa", "mastercard", "debit", "credit", "ach", "payment",
]

NOISE_PATTERNS = [
    re.compile(r"(\*|#|x){2,}\s*\d{2,4}", re.IGNORECASE),  # masked card: xxxx1234, **1234
    re.compile(r"x{6,}\d{2,6}", re.IGNORECASE),
    re.compile(r"\bPOS\d{1,4}\b", re.IGNORECASE),  # terminal markers
    re.compile(r"\b[A-Z]\d{3,5}\b", re.IGNORECASE),  # short export codes like N0120
]

STOP_WORDS = {
    "CARD", "DEBIT", "CREDIT", "PURCHASE", "ONLINE", "PAYMENT", "TRANSFER",
    "RECURRING", "ACH", "POS", "CHECK", "WITHDRAWAL", "DEPOSIT", "FEE", "INTEREST",
}

ADDRESS_STOP_WORDS = {
    "ST", "STREET", "AVE", "AVENUE", "RD", "ROAD", "BLVD", "BOULEVARD",
    "DR", "DRIVE", "LN", "LANE", "CT", "COURT", "WAY", "PKWY", "PARKWAY",
    "HWY", "HIGHWAY", "SUITE", "STE", "SU", "UNIT", "APT",
}

HONORIFICS = {"MR", "MRS", "MS", "DR"}

MAX_KEY_TOKENS = 8

_PROCESSOR_PREFIX = re.compile(r"^\s*[A-Z0-9]{1,3}\s*\*\s*")
_COUNTRY = re.compile(r"\bUSA\b")
_PUNCTUATION = re.compile(r"[^A-Z0-9\-\s]")
_ALPHA_NUMERIC_RUNS = re.compile(r"\d+|[^\d]+")


def normalize_key(raw: str) -> str:
    """
    Canonical merchant lookup key.

    Deterministic and total: empty input gives ``""`` and input with no
    meaningful token gives the trimmed, uppercased input.
    """
    trimmed = (raw or "").strip()
    if not trimmed:
        return ""

    rewritten = _canonical_rewrite(trimmed)
    if rewritten:
        return rewritten

    tokens = _meaningful_tokens(_strip_wrappers_and_prefixes(trimmed))
    if not tokens:
        return trimmed.upper()
    return " ".join(tokens)


def display_name(raw: str) -> str:
    """Title-cased merchant name suggested for a learned rule."""
    trimmed = (raw or "").strip()
    if not trimmed:
        return ""

    rewritten = _canonical_rewrite(trimmed)
    if rewritten:
        return _titleize(rewritten)

    tokens = _meaningful_tokens(_strip_wrappers_and_prefixes(trimmed))
    if not tokens:
        return trimmed
    return _titleize(" ".join(tokens))


def _canonical_rewrite(text: str) -> str | None:
    upper = text.upper()
    for needle, replacement in CANONICAL_REWRITES:
        if needle in upper:
            return replacement
    return None


def _strip_prefixes(text: str) -> str:
    out = text.strip()
    while True:
        lower = out.lower()
        prefix = next((p for p in EXPORT_PREFIXES if lower.startswith(p + " ")), None)
        if prefix is None:
            return out
        out = out[len(prefix):].strip()


def _strip_wrappers_and_prefixes(text: str) -> str:
    out = text.strip()
    for wrapper in PROVIDER_WRAPPERS:
        out = wrapper.sub("", out)

    out = _strip_prefixes(out)

    for pattern in NOISE_PATTERNS:
        out = pattern.sub("", out)

    return " ".join(out.split())


def _is_phone_or_zip(token: str) -> bool:
    return token.isdigit() and (len(token) >= 7 or len(token) in (5, 9))


def _meaningful_tokens(text: str) -> list[str]:
    if not text:
        return []

    cleaned = text.upper().replace("&", " AND ")
    cleaned = _PROCESSOR_PREFIX.sub("", cleaned)  # "DD *DOORDASH" -> "DOORDASH"
    cleaned = _COUNTRY.sub("", cleaned)
    cleaned = _PUNCTUATION.sub(" ", cleaned)

    meaningful: list[str] = []
    for token in cleaned.split():
        # "MRPICKLE303" -> "MRPICKLE", "303"
        for part in _ALPHA_NUMERIC_RUNS.findall(token):
            part = part.strip("-")
            if not part or part in STOP_WORDS:
                continue
            if len(part) == 1 and part.isalpha():
                continue

            # phone/zip, or a numeric run after the name: address or store id starts here
            if _is_phone_or_zip(part) or (part.isdigit() and meaningful):
                return _drop_trailing_states(meaningful)

            if part in ADDRESS_STOP_WORDS and meaningful:
                return _drop_trailing_states(meaningful)

            meaningful.append(part)
            if len(meaningful) >= MAX_KEY_TOKENS:
                return meaningful

    return _drop_trailing_states(meaningful)


def _drop_trailing_states(tokens: list[str]) -> list[str]:
    while len(tokens) >= 2 and len(tokens[-1]) == 2 and tokens[-1].isalpha():
        tokens = tokens[:-1]
    return tokens


def _title_word(word: str) -> str:
    if len(word) <= 4 and word not in HONORIFICS and all(c.isupper() or c.isdigit() or c == "-" for c in word):
        return word
    if "-" in word:
        return "-".join(_title_word(part) for part in word.split("-"))
    lower = word.lower()
    return lower[:1].upper() + lower[1:]


def _titleize(text: str) -> str:
    return " ".join(_title_word(w) for w in text.split())
