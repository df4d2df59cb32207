"""Rule engine that reads a transfer amount out of OCR text from a receipt photo"""

import re
from typing import List, Optional

CURRENCY_PATTERN = re.compile(r"(Rp|IDR)\s*([0-9.,]+)", re.IGNORECASE)
NOMINAL_PATTERN = re.compile(r"nominal\s*([0-9.,]+)", re.IGNORECASE)
DIGIT_RUN_PATTERN = re.compile(r"[0-9]{4,}")
DECIMAL_SUFFIX_PATTERN = re.compile(r"[.,]00$")

MIN_LABELLED_AMOUNT = 1_000
MAX_PLAIN_NUMBER = 100_000_000  # Longer runs are account numbers or references

# Interbank transfer fees that banks print added onto the nominal
BANK_FEES = {"2500": 2_500, "6500": 6_500}


def _parse_labelled(token: str) -> Optional[int]:
    """Parse '210.000,00' style tokens: drop the decimal suffix, then all separators"""
    token = DECIMAL_SUFFIX_PATTERN.sub("", token)
    digits = token.replace(".", "").replace(",", "")
    if not digits.isdigit():
        return None
    return int(digits)


def _labelled_candidates(text: str, pattern: re.Pattern, group: int) -> List[int]:
    candidates = []
    for match in pattern.finditer(text):
        value = _parse_labelled(match.group(group))
        if value is not None and value >= MIN_LABELLED_AMOUNT:
            candidates.append(value)
    return candidates


def _fallback_candidate(text: str) -> Optional[int]:
    """
    Pick a value from bare digit runs.

    The largest plausible number on a receipt is usually the running balance
    printed last, so with more than one run the second-largest wins.
    """
    numbers = sorted(
        n for n in (int(run) for run in DIGIT_RUN_PATTERN.findall(text))
        if n < MAX_PLAIN_NUMBER
    )
    if not numbers:
        return None
    return numbers[0] if len(numbers) == 1 else numbers[-2]


def remove_bank_fee(amount: int) -> int:
    """Strip a trailing 2500/6500 transfer fee from the amount"""
    fee = BANK_FEES.get(str(amount)[-4:])
    return amount - fee if fee else amount


def extract_amount(raw_text: str) -> Optional[int]:
    """
    Extract a single rupiah amount from OCR output.

    Tiers, first non-empty one wins:
    1. Values labelled with "Rp" / "IDR"
    2. Values labelled with "Nominal"
    3. Any run of 4+ digits below 100,000,000

    The largest candidate is taken and a known bank fee suffix removed.
    Returns None when nothing looks like an amount; callers treat that as
    "needs manual input".
    """
    text = re.sub(r"\s+", " ", raw_text or "")

    candidates = _labelled_candidates(text, CURRENCY_PATTERN, 2)

    if not candidates:
        candidates = _labelled_candidates(text, NOMINAL_PATTERN, 1)

    if not candidates:
        fallback = _fallback_candidate(text)
        if fallback is None:
            return None
        candidates.append(fallback)

    return remove_bank_fee(max(candidates))
