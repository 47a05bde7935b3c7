# Turns free-text pharmacy product names into the facts the matcher works on:
# active ingredient, dosage, pack quantity and a token set.

import re
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, List, NamedTuple, Optional, Sequence

UNKNOWN_INGREDIENT = "UNKNOWN"

# First match wins, so order matters only if one name contained several
INGREDIENTS = ("Sildenafil", "Tadalafil", "Vardenafil")

KNOWN_BRANDS = (
    "VIAGRA",
    "CIALIS",
    "LEVITRA",
    "Erecfil",
    "Erecto",
    "Spiagra",
    "Dalafil",
    "Retafil",
    "Vivax",
    "Caliberi",
)

_DOSAGE_PATTERN = re.compile(r"(\d+)\s*mg", re.IGNORECASE)
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


class QuantityRule(NamedTuple):
    """One pack-size pattern and how to read the count out of its match."""

    name: str
    pattern: re.Pattern
    extract: Callable[[re.Match], int]


def _group(index: int) -> Callable[[re.Match], int]:
    return lambda match: int(match.group(index))


def _parenthesized(match: re.Match) -> int:
    # "(500)" is almost always a dosage, not a pack size
    value = int(match.group(1))
    return value if value <= 100 else 0


# Evaluated in order; the first rule producing a count of at least 1 wins.
QUANTITY_RULES: List[QuantityRule] = [
    QuantityRule(
        "unit_word",
        re.compile(r"(\d+)\s*(tablets?|tabs?|pcs?|capsules?|pieces?|units?)", re.IGNORECASE),
        _group(1),
    ),
    QuantityRule("s_suffix", re.compile(r"(\d+)s\b", re.IGNORECASE), _group(1)),
    QuantityRule("box_of", re.compile(r"(box|pack)\s*(of)?\s*(\d+)", re.IGNORECASE), _group(3)),
    QuantityRule("x_prefix", re.compile(r"x(\d+)\b", re.IGNORECASE), _group(1)),
    QuantityRule("parenthesized", re.compile(r"\((\d+)\)"), _parenthesized),
]


@dataclass(frozen=True)
class NormalizedFacts:
    ingredient: str
    dosage: str
    quantity: int
    tokens: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_classified(self) -> bool:
        """True when the listing can join an ingredient/dosage comparison group."""
        return self.ingredient != UNKNOWN_INGREDIENT and bool(self.dosage)

    @property
    def group_key(self) -> str:
        return f"{self.ingredient}-{self.dosage}"


def extract_ingredient(name: str, vocabulary: Sequence[str] = INGREDIENTS) -> str:
    upper_name = (name or "").upper()
    for ingredient in vocabulary:
        if ingredient.upper() in upper_name:
            return ingredient
    return UNKNOWN_INGREDIENT


def extract_dosage(name: str, explicit_dosage: Optional[str] = None) -> str:
    """Dosage such as "50mg", preferring the scraper-provided value over the name."""
    if explicit_dosage and explicit_dosage.strip():
        return re.sub(r"\s+", "", explicit_dosage.lower())
    match = _DOSAGE_PATTERN.search(name or "")
    if match:
        return f"{match.group(1)}mg"
    return ""


def extract_quantity(name: str) -> int:
    """Number of tablets/units in the pack; 1 when the name gives no count."""
    text = (name or "").lower()
    for rule in QUANTITY_RULES:
        match = rule.pattern.search(text)
        if not match:
            continue
        quantity = rule.extract(match)
        if quantity >= 1:
            return quantity
    return 1


def extract_brand(name: str, brands: Sequence[str] = KNOWN_BRANDS) -> Optional[str]:
    """First known brand that appears as a whole word in the name."""
    for brand in brands:
        if re.search(rf"\b{re.escape(brand)}\b", name or "", re.IGNORECASE):
            return brand
    return None


def tokenize(name: str) -> FrozenSet[str]:
    """Lowercase word set of a name with all punctuation treated as a separator."""
    normalized = _NON_ALNUM.sub(" ", (name or "").lower())
    return frozenset(token for token in normalized.split() if token)


def normalize(
    name: str,
    explicit_dosage: Optional[str] = None,
    vocabulary: Sequence[str] = INGREDIENTS,
) -> NormalizedFacts:
    return NormalizedFacts(
        ingredient=extract_ingredient(name, vocabulary),
        dosage=extract_dosage(name, explicit_dosage),
        quantity=extract_quantity(name),
        tokens=tokenize(name),
    )
