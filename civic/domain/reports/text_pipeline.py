"""Deterministic text normalization and keyword categorization."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional, Sequence

from civic.domain.reports.models import Category

# Leading punctuation of a whitespace-delimited word, then its first word character
_WORD_START = re.compile(r"(?<!\S)([^\w\s]*)(\w)")


@dataclass(frozen=True)
class CategoryRule:
    category: Category
    keywords: tuple[str, ...]
    pattern: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        alternatives = "|".join(re.escape(keyword) for keyword in self.keywords)
        object.__setattr__(self, "pattern", re.compile(alternatives, re.IGNORECASE))

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


# Evaluation order decides the winner when several rules match
CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(Category.SANITATION, ("garbage", "trash", "waste", "litter", "rubbish")),
    CategoryRule(Category.WATER, ("water", "leak", "pipe", "flooding", "drain")),
    CategoryRule(Category.ROAD, ("road", "pothole", "street", "pavement", "sidewalk")),
    CategoryRule(Category.ELECTRICITY, ("light", "electricity", "power", "outage", "lamp")),
    CategoryRule(Category.CORRUPTION, ("corrupt", "bribe", "illegal", "fraud")),
    CategoryRule(Category.SAFETY, ("danger", "unsafe", "crime", "security", "threat")),
)


@dataclass(frozen=True)
class ProcessedText:
    clean_text: str
    category: Optional[Category]


def _capitalize_first(match: re.Match[str]) -> str:
    return match.group(1) + match.group(2).upper()


def normalize(raw: str) -> str:
    """Trim and upper-case the first letter of every whitespace-delimited word.

    Leading punctuation is skipped, so ``"near"`` becomes ``"Near"``. A word that
    starts with a digit keeps its letters as they are. The rest of each word is
    left untouched, as is the whitespace between words.
    """

    return _WORD_START.sub(_capitalize_first, raw.strip())


def categorize(raw: str, rules: Sequence[CategoryRule] = CATEGORY_RULES) -> Optional[Category]:
    for rule in rules:
        if rule.matches(raw):
            return rule.category
    return None


def process(raw: str) -> ProcessedText:
    return ProcessedText(clean_text=normalize(raw), category=categorize(raw))
