"""
Dictionary-driven normalizers that turn raw listing text into identity tokens.

All three are deterministic and lean towards false splits: when a string is
ambiguous it keeps its own bucket rather than being merged into another.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable

LOG = logging.getLogger(__name__)

UNKNOWN_COMPANY = "unknown"
UNKNOWN = "UNKNOWN"

AliasLookup = Callable[[str], str | None]


def _keyword_re(keyword: str, *, inflected: bool = False) -> re.Pattern[str]:
    # Anchored at non-alphanumeric boundaries so "us" never hits "business".
    # Inflected keywords also accept a plural "s" or a level number: "engineers", "sde2".
    tail = r"(?:s|\d+)?" if inflected else ""
    return re.compile(r"(?<![a-z0-9])" + re.escape(keyword) + tail + r"(?![a-z0-9])")


def _has_any(text: str, patterns: tuple[re.Pattern[str], ...]) -> bool:
    return any(p.search(text) for p in patterns)


# ---- Company ----------------------------------------------------------------

COMPANY_SUFFIX_WORDS = frozenset({
    "ltd",
    "limited",
    "pvt",
    "private",
    "inc",
    "llc",
    "corp",
    "corporation",
    "co",
    "company",
    "india",
    "technologies",
    "technology",
    "solutions",
    "services",
    "software",
    "systems",
    "global",
    "consulting",
})

_NON_ALNUM_SPACE = re.compile(r"[^a-z0-9\s]")
_WS = re.compile(r"\s+")


class CompanyNormalizer:
    """
    raw company name -> canonical token.

    Steps run in a fixed order: lowercase/trim, strip punctuation, drop suffix
    words, collapse whitespace, then alias lookup. The alias lookup is a
    callable so the resolver can answer it from inside its own transaction.
    """

    def __init__(self, alias_lookup: AliasLookup | None = None) -> None:
        self.alias_lookup = alias_lookup

    def clean(self, raw: str | None) -> str:
        """Steps 1-4 only (no alias lookup)."""
        if raw is None or not raw.strip():
            return UNKNOWN_COMPANY
        s = raw.lower().strip()
        s = _NON_ALNUM_SPACE.sub("", s)
        words = [w for w in s.split() if w not in COMPANY_SUFFIX_WORDS]
        s = _WS.sub(" ", " ".join(words)).strip()
        return s or UNKNOWN_COMPANY

    def normalize(self, raw: str | None, alias_lookup: AliasLookup | None = None) -> str:
        token = self.clean(raw)
        if token == UNKNOWN_COMPANY:
            if raw is None or not raw.strip():
                LOG.warning("Blank company name; using %r", UNKNOWN_COMPANY)
            return token
        lookup = alias_lookup or self.alias_lookup
        if lookup is None:
            return token
        target = lookup(token)
        if target:
            LOG.debug("Alias match: %r -> %r", token, target)
            return target
        return token


# ---- Role -------------------------------------------------------------------


class _RoleRule:
    __slots__ = ("cluster", "patterns", "require_all")

    def __init__(self, cluster: str, keywords: tuple[str, ...], require_all: bool = False) -> None:
        self.cluster = cluster
        self.patterns = tuple(_keyword_re(k, inflected=True) for k in keywords)
        self.require_all = require_all

    def matches(self, text: str) -> bool:
        if self.require_all:
            return all(p.search(text) for p in self.patterns)
        return _has_any(text, self.patterns)


# Order is significant: hybrid and specific clusters first, the generic
# catch-all last.
ROLE_RULES: tuple[_RoleRule, ...] = (
    _RoleRule("BACKEND_DATA", ("backend", "data"), require_all=True),
    _RoleRule("DEVOPS", ("devops", "sre", "platform", "infrastructure", "cloud")),
    _RoleRule("MOBILE", ("android", "ios", "mobile", "flutter", "react native")),
    _RoleRule("DATA_ENGINEER", ("data engineer", "pipeline", "spark", "kafka", "airflow")),
    _RoleRule("FULLSTACK", ("fullstack", "full stack", "full-stack")),
    _RoleRule(
        "FRONTEND",
        ("frontend", "front end", "front-end", "ui developer", "react developer", "angular developer", "vue"),
    ),
    _RoleRule(
        "BACKEND",
        (
            "backend",
            "back end",
            "back-end",
            "api developer",
            "server side",
            "java developer",
            "spring",
            "node developer",
            "python developer",
            "golang",
        ),
    ),
    _RoleRule("QA", ("qa", "quality assurance", "test engineer", "automation engineer", "sdet")),
    _RoleRule("GENERIC_SE", ("software engineer", "software developer", "sde", "swe", "programmer")),
)


class RoleNormalizer:
    """raw job title -> role cluster. First matching rule wins."""

    def __init__(self, rules: tuple[_RoleRule, ...] = ROLE_RULES) -> None:
        self.rules = rules

    def normalize(self, raw: str | None) -> str:
        if raw is None or not raw.strip():
            LOG.warning("Blank job title; using %s", UNKNOWN)
            return UNKNOWN
        title = raw.lower().strip()
        for rule in self.rules:
            if rule.matches(title):
                return rule.cluster
        LOG.debug("No role cluster for %r", raw)
        return UNKNOWN


# ---- Location ---------------------------------------------------------------

_REMOTE = tuple(_keyword_re(k) for k in ("remote", "work from home", "wfh", "anywhere"))
_REMOTE_US = tuple(_keyword_re(k) for k in ("us", "usa", "united states"))
_REMOTE_GLOBAL = tuple(_keyword_re(k) for k in ("global", "worldwide", "anywhere"))

CITY_ALIASES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("BANGALORE", ("bangalore", "bengaluru")),
    ("MUMBAI", ("mumbai", "bombay")),
    ("DELHI_NCR", ("delhi", "ncr", "gurugram", "gurgaon", "noida")),
    ("HYDERABAD", ("hyderabad", "hyd")),
    ("CHENNAI", ("chennai", "madras")),
    ("PUNE", ("pune",)),
    ("KOLKATA", ("kolkata", "calcutta")),
    ("AHMEDABAD", ("ahmedabad",)),
    ("INDORE", ("indore",)),
)
_CITIES = tuple((city, tuple(_keyword_re(a) for a in aliases)) for city, aliases in CITY_ALIASES)


class LocationNormalizer:
    """
    raw location -> hiring-pool cluster.

    "Bengaluru"          -> BANGALORE
    "Remote - India"     -> REMOTE_INDIA
    "Bangalore / Remote" -> BANGALORE_OR_REMOTE
    "Ahmedabad East"     -> AHMEDABAD
    "Leeds"              -> LEEDS (unrecognized text keeps its own bucket)
    """

    def normalize(self, raw: str | None) -> str:
        if raw is None or not raw.strip():
            LOG.warning("Blank location; using %s", UNKNOWN)
            return UNKNOWN

        loc = raw.lower().strip()
        is_remote = _has_any(loc, _REMOTE)
        city = self._detect_city(loc)

        if is_remote and city:
            return f"{city}_OR_REMOTE"
        if is_remote:
            if _has_any(loc, _REMOTE_US):
                return "REMOTE_US"
            if _has_any(loc, _REMOTE_GLOBAL):
                return "REMOTE_GLOBAL"
            return "REMOTE_INDIA"
        if city:
            return city

        fallback = _WS.sub("_", raw.strip().upper()).replace(":", "_")
        LOG.debug("No location cluster for %r; using %r", raw, fallback)
        return fallback

    @staticmethod
    def _detect_city(loc: str) -> str | None:
        for city, patterns in _CITIES:
            if _has_any(loc, patterns):
                return city
        return None
