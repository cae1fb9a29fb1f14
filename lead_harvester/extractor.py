"""Heuristic extraction of emails, phone numbers, job titles and names from text.

Every function here is stateless. Contact assembly around a phone number is
described by :data:`CONTEXT_RULES`, an ordered table of independent rules that
look at the phone's own line and at the lines above it.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence, Set

from .models import Contact, phone_digits

EMAIL_PATTERN = re.compile(r"[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}", re.IGNORECASE)
PHONE_PATTERN = re.compile(r"(?:\+?\d{1,4}[-.\s]?)?(?:\(?\d{3}\)?[-.\s]?)?\d{3}[-.\s]?\d{4}")
# Indian mobile numbers are matched with high confidence and skip the length check.
MOBILE_PATTERN = re.compile(r"(?:\+91[\-\s]?)?[6-9]\d{9}")

IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".webp")

MIN_PHONE_DIGITS = 10
MAX_PHONE_DIGITS = 13
MAX_TITLE_LENGTH = 50

# Order matters: the first keyword found in the text wins.
TITLE_KEYWORDS = (
    "ceo",
    "founder",
    "co-founder",
    "director",
    "manager",
    "president",
    "vp",
    "vice president",
    "head of",
    "chief",
    "owner",
    "partner",
    "sales",
    "support",
    "representative",
    "consultant",
    "hr",
    "human resources",
    "executive",
    "officer",
    "admin",
    "administrator",
)
TITLE_DELIMITERS = ",.|:\n"

NAME_DENYLIST = (
    "contact", "us", "touch", "support", "info", "customer", "service", "help", "desk",
    "address", "phone", "email", "mobile", "office", "headquarters", "inquiry", "sales",
    "admin", "webmaster", "career", "job", "opening", "team", "staff", "member", "department",
    "feedback", "question", "faq", "home", "about", "product", "privacy", "policy", "terms",
    "copyright", "rights", "reserved", "sitemap", "login", "register", "sign", "up",
)


def extract_emails(text: str) -> Set[str]:
    emails: Set[str] = set()
    for match in EMAIL_PATTERN.finditer(text):
        email = match.group(0).lower()
        if email.endswith(IMAGE_SUFFIXES):
            continue
        emails.add(email)
    return emails


def extract_phones(text: str) -> Set[str]:
    """Return phone-like substrings of ``text``, one spelling per digit string."""

    phones: Set[str] = set()
    seen_digits: Set[str] = set()

    def keep(candidate: str) -> None:
        digits = phone_digits(candidate)
        if digits in seen_digits:
            return
        seen_digits.add(digits)
        phones.add(candidate)

    for match in MOBILE_PATTERN.finditer(text):
        keep(match.group(0).strip())

    for match in PHONE_PATTERN.finditer(text):
        candidate = match.group(0).strip()
        if MIN_PHONE_DIGITS <= len(phone_digits(candidate)) <= MAX_PHONE_DIGITS:
            keep(candidate)
    return phones


def extract_job_title(text: str) -> Optional[str]:
    lowered = text.lower()
    # Slicing assumes lower() kept the length, which holds outside a few exotic scripts.
    source = text if len(lowered) == len(text) else lowered
    for keyword in TITLE_KEYWORDS:
        index = lowered.find(keyword)
        if index < 0:
            continue
        start = max(lowered.rfind(delimiter, 0, index) for delimiter in TITLE_DELIMITERS) + 1
        ends = [pos for pos in (lowered.find(delimiter, index) for delimiter in TITLE_DELIMITERS) if pos >= 0]
        end = min(ends) if ends else len(lowered)
        candidate = source[start:end].strip()
        if len(keyword) < len(candidate) <= MAX_TITLE_LENGTH:
            return candidate
        return keyword
    return None


def extract_name_candidate(text: str) -> Optional[str]:
    words = text.split()
    if not 2 <= len(words) <= 3:
        return None
    if not all(word[0].isupper() and any(char.islower() for char in word) for word in words):
        return None
    folded = text.casefold()
    if any(banned in folded for banned in NAME_DENYLIST):
        return None
    return text.strip()


def first_in_text(candidates: Iterable[str], text: str) -> Optional[str]:
    """Pick the candidate that appears earliest in ``text`` (longest on ties)."""

    ordered = sorted(candidates, key=lambda value: (_position(text, value), -len(value), value))
    return ordered[0] if ordered else None


def _position(text: str, value: str) -> int:
    index = text.find(value)
    if index < 0:
        index = text.lower().find(value.lower())
    return index if index >= 0 else len(text)


@dataclass(frozen=True)
class ContextRule:
    """Fill ``field`` of a contact by running ``extract`` on a nearby line."""

    field: str
    offset: int
    extract: Callable[[str], Optional[str]]


CONTEXT_RULES = (
    ContextRule("title", 0, extract_job_title),
    ContextRule("name", 0, extract_name_candidate),
    # Name on the line above the phone.
    ContextRule("name", 1, extract_name_candidate),
    # Name, title, phone on three consecutive lines.
    ContextRule("name", 2, extract_name_candidate),
    ContextRule("title", 1, extract_job_title),
)


def contact_from_lines(
    lines: Sequence[str],
    index: int,
    rules: Sequence[ContextRule] = CONTEXT_RULES,
) -> Optional[Contact]:
    """Build a contact around the phone number on ``lines[index]``.

    Returns ``None`` when the line holds no phone number or when neither a
    name nor a title could be attached to it.
    """

    line = lines[index]
    phones = extract_phones(line)
    if not phones:
        return None

    found = {"name": None, "title": None}
    for rule in rules:
        if found.get(rule.field) or index - rule.offset < 0:
            continue
        found[rule.field] = rule.extract(lines[index - rule.offset])

    contact = Contact(
        name=found["name"],
        title=found["title"],
        phone=first_in_text(phones, line),
        email=first_in_text(extract_emails(line), line),
    )
    return contact if contact.is_useful else None


__all__ = [
    "CONTEXT_RULES",
    "ContextRule",
    "contact_from_lines",
    "extract_emails",
    "extract_job_title",
    "extract_name_candidate",
    "extract_phones",
    "first_in_text",
]
