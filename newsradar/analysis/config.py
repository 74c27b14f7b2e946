"""
Analysis configuration - lexicons, stop lists, source tiers and
correlation topics.
"""

import re
from dataclasses import dataclass, field


# Alert keywords for high-priority detection
ALERT_KEYWORDS: tuple[str, ...] = (
    "war",
    "invasion",
    "military",
    "nuclear",
    "sanctions",
    "missile",
    "attack",
    "troops",
    "conflict",
    "strike",
    "bomb",
    "casualties",
    "ceasefire",
    "treaty",
    "nato",
    "coup",
    "martial law",
    "emergency",
    "assassination",
    "terrorist",
    "hostage",
    "evacuation",
)

NEGATIVE_WORDS: frozenset[str] = frozenset(
    {
        "war", "attack", "killed", "death", "dead", "crisis", "crash",
        "collapse", "threat", "danger", "escalate", "escalation", "conflict",
        "strike", "bomb", "explosion", "casualties", "disaster", "emergency",
        "catastrophe", "fail", "failure", "reject", "rejected", "sanctions",
        "invasion", "missile", "nuclear", "terror", "terrorist", "hostage",
        "assassination", "coup", "protest", "riot", "warns", "warning",
        "fears", "concern", "worried", "plunge", "plummet", "surge", "flee",
        "evacuate", "shutdown", "layoff", "layoffs", "cuts", "slump",
        "recession",
    }
)

POSITIVE_WORDS: frozenset[str] = frozenset(
    {
        "peace", "deal", "agreement", "breakthrough", "success", "win",
        "gains", "recovery", "growth", "rise", "surge", "boost", "rally",
        "soar", "jump", "ceasefire", "treaty", "alliance", "partnership",
        "cooperation", "progress", "release", "released", "freed", "rescue",
        "saved", "approved", "passes", "record", "milestone", "historic",
        "landmark", "celebrates", "victory",
    }
)

# Words to ignore when extracting trending terms and correlation keywords
STOP_WORDS: frozenset[str] = frozenset(
    {
        "the", "a", "an", "is", "are", "was", "were", "be", "been", "have",
        "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "must", "shall", "can", "to", "of", "in",
        "for", "on", "with", "at", "by", "from", "as", "into", "through",
        "during", "before", "after", "above", "below", "between", "under",
        "again", "further", "then", "once", "and", "but", "or", "nor", "so",
        "yet", "both", "either", "neither", "not", "only", "own", "same",
        "than", "too", "very", "just", "also", "now", "here", "there",
        "when", "where", "why", "how", "all", "each", "every", "few", "more",
        "most", "other", "some", "such", "no", "any", "new", "says", "said",
        "report", "reports", "according", "news", "update", "this", "that",
        "these", "those", "his", "her", "its", "their", "our", "your", "who",
        "what", "which", "over", "amid", "about", "against", "after", "top",
        "live", "breaking", "latest", "watch", "video", "exclusive",
        "analysis", "opinion", "first", "last", "year", "week", "day",
        "today", "tomorrow", "yesterday",
    }
)

MONTH_NAMES: tuple[str, ...] = (
    "january", "february", "march", "april", "may", "june", "july",
    "august", "september", "october", "november", "december",
)

WEEKDAY_NAMES: tuple[str, ...] = (
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday",
    "sunday",
)

# Capitalised words that are common in headlines but name no subject
COMMON_CAPITALIZED: frozenset[str] = frozenset(
    {
        "president", "minister", "government", "officials", "official",
        "police", "court", "state", "states", "city", "people", "world",
        "market", "markets", "stocks", "shares", "prices", "bank", "group",
        "company", "chief", "leader", "leaders", "former", "senior",
        "north", "south", "east", "west", "central", "national",
        "international", "global", "united", "party", "council", "house",
        "senate", "congress", "parliament", "army", "forces", "strike",
        "deal", "talks", "plan", "bill", "law", "election", "vote", "poll",
        "crisis", "war", "attack", "sanctions",
    }
)

# Publisher tier: 1 = wire services, 4 = everything unknown
SOURCE_TIERS: dict[str, int] = {
    "Reuters": 1,
    "AP": 1,
    "AP News": 1,
    "AFP": 1,
    "Bloomberg": 1,
    "BBC": 2,
    "BBC World": 2,
    "Financial Times": 2,
    "WSJ": 2,
    "The Guardian": 2,
    "CNN": 2,
    "NPR": 2,
    "Al Jazeera": 2,
    "CNBC": 3,
    "Politico": 3,
    "The Hill": 3,
    "Axios": 3,
    "Defense One": 3,
    "Breaking Defense": 3,
}
DEFAULT_SOURCE_TIER = 4


@dataclass
class CorrelationTopic:
    """Topic definition with compiled regex patterns and linked symbols."""

    id: str
    patterns: list[re.Pattern]
    category: str
    symbols: list[str] = field(default_factory=list)


def _compile(*patterns: str) -> list[re.Pattern]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


# Correlation topics with compiled regex patterns
CORRELATION_TOPICS: list[CorrelationTopic] = [
    CorrelationTopic(
        id="tariffs",
        patterns=_compile(r"tariff", r"trade war", r"import tax", r"customs duty"),
        category="Economy",
        symbols=["SPY", "QQQ", "XLI"],
    ),
    CorrelationTopic(
        id="fed-rates",
        patterns=_compile(
            r"federal reserve", r"interest rate", r"rate cut", r"rate hike",
            r"powell", r"\bfomc\b",
        ),
        category="Economy",
        symbols=["SPY", "TLT", "XLF"],
    ),
    CorrelationTopic(
        id="inflation",
        patterns=_compile(r"inflation", r"\bcpi\b", r"consumer price"),
        category="Economy",
        symbols=["TLT", "GLD"],
    ),
    CorrelationTopic(
        id="china-tensions",
        patterns=_compile(
            r"china.*taiwan", r"south china sea", r"beijing.*washington",
        ),
        category="Geopolitics",
        symbols=["FXI", "TSM", "EWT"],
    ),
    CorrelationTopic(
        id="russia-ukraine",
        patterns=_compile(r"ukraine", r"zelensky", r"crimea", r"donbas", r"kyiv"),
        category="Conflict",
        symbols=["UNG", "WEAT", "LMT"],
    ),
    CorrelationTopic(
        id="israel-gaza",
        patterns=_compile(r"gaza", r"hamas", r"netanyahu", r"hezbollah"),
        category="Conflict",
        symbols=["USO", "LMT"],
    ),
    CorrelationTopic(
        id="iran",
        patterns=_compile(r"\biran", r"tehran", r"ayatollah", r"\birgc\b"),
        category="Geopolitics",
        symbols=["USO", "XLE"],
    ),
    CorrelationTopic(
        id="north-korea",
        patterns=_compile(r"north korea", r"pyongyang", r"kim jong", r"\bdprk\b"),
        category="Geopolitics",
        symbols=["EWY"],
    ),
    CorrelationTopic(
        id="crypto",
        patterns=_compile(r"bitcoin", r"ethereum", r"crypto"),
        category="Finance",
        symbols=["BTC", "ETH", "COIN"],
    ),
    CorrelationTopic(
        id="bank-crisis",
        patterns=_compile(
            r"bank.*fail", r"banking crisis", r"\bfdic\b", r"bank run",
        ),
        category="Finance",
        symbols=["XLF", "KRE"],
    ),
    CorrelationTopic(
        id="oil-energy",
        patterns=_compile(
            r"oil price", r"\bopec", r"energy crisis", r"crude", r"pipeline",
        ),
        category="Economy",
        symbols=["USO", "XLE"],
    ),
    CorrelationTopic(
        id="shipping",
        patterns=_compile(
            r"red sea", r"strait of hormuz", r"suez", r"shipping.*attack",
            r"tanker",
        ),
        category="Security",
        symbols=["USO", "ZIM"],
    ),
    CorrelationTopic(
        id="semiconductors",
        patterns=_compile(r"chip", r"semiconductor", r"export control"),
        category="Tech",
        symbols=["SMH", "NVDA", "TSM"],
    ),
    CorrelationTopic(
        id="cybersecurity",
        patterns=_compile(
            r"cyber.*attack", r"ransomware", r"data breach", r"hack",
        ),
        category="Security",
        symbols=["CIBR"],
    ),
    CorrelationTopic(
        id="recession",
        patterns=_compile(
            r"recession", r"economic downturn", r"gdp.*(decline|contract)",
        ),
        category="Economy",
        symbols=["SPY", "TLT"],
    ),
]


def detect_topics(text: str) -> list[CorrelationTopic]:
    """Topics whose patterns match ``text``."""
    return [t for t in CORRELATION_TOPICS if any(p.search(text) for p in t.patterns)]


def contains_alert_keyword(text: str) -> tuple[bool, str | None]:
    """Check if text contains alert keywords as whole words."""
    lower_text = text.lower()
    for keyword in ALERT_KEYWORDS:
        if re.search(rf"\b{re.escape(keyword)}\b", lower_text):
            return True, keyword
    return False, None


def get_source_tier(source: str, tiers: dict[str, int] | None = None) -> int:
    """Tier of a publisher; unknown publishers rank last."""
    return (tiers or SOURCE_TIERS).get(source, DEFAULT_SOURCE_TIER)
