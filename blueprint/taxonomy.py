"""Closed classification domains shared by filtering, ingestion and scoring.

Each domain is a ``str`` Enum plus the alias table, default value and the
schema revision each value first appeared in. Adding a value is a change to
this module only.
"""
from enum import Enum
from typing import Dict, List, Optional, Type

TAXONOMY_VERSION = 2


class Platform(str, Enum):
    YOUTUBE = "Youtube"
    TIKTOK = "TikTok"
    INSTAGRAM = "Instagram"


class Category(str, Enum):
    CINEMATIC = "Cinematic/Storytelling"
    COMEDY = "Comedy/Humor"
    EDUCATIONAL = "Educational"
    LIFESTYLE = "Lifestyle"
    TRENDS = "Trends/Viral"


class Focus(str, Enum):
    SPORTS = "Sports"
    FASHION = "Fashion"
    BEAUTY = "Beauty"
    HEALTH = "Health + Wellness"
    TECH_GAMING = "Tech + Gaming"
    TRAVEL = "Travel + Adventure"
    MUSIC_CULTURE = "Music + Culture"
    FINANCE = "Finance"


class Mood(str, Enum):
    CALM = "Calm"
    HIGH_ENERGY = "High Energy"
    EMOTIONAL = "Emotional"
    FUNNY = "Funny/Lighthearted"
    DRAMATIC = "Dramatic/Suspenseful"


class SponsoredContent(str, Enum):
    GOODS = "Goods"
    SERVICES = "Services"
    EVENTS = "Events"


class Orientation(str, Enum):
    ALL = "all"
    VERTICAL = "vertical"
    HORIZONTAL = "horizontal"


# Literal filter option meaning "sponsoredContent is absent".
NOT_SPONSORED = "None"

VERTICAL_PLATFORMS = frozenset({Platform.TIKTOK.value, Platform.INSTAGRAM.value})
HORIZONTAL_PLATFORMS = frozenset({Platform.YOUTUBE.value})


class TaxonomyDomain:
    def __init__(
        self,
        field: str,
        enum: Type[Enum],
        default: Optional[Enum] = None,
        aliases: Optional[Dict[str, Enum]] = None,
        introduced: Optional[Dict[Enum, int]] = None,
    ):
        self.field = field
        self.enum = enum
        self.default = default
        self.aliases = {k.lower(): v for k, v in (aliases or {}).items()}
        self.introduced = introduced or {}

    def values(self, version: int = TAXONOMY_VERSION) -> List[str]:
        return [m.value for m in self.enum if self.introduced.get(m, 1) <= version]

    def parse(self, raw: Optional[str]) -> Optional[Enum]:
        """Exact value, case-insensitive value or alias; None when unrecognised."""
        if raw is None:
            return None
        text = str(raw).strip()
        if not text:
            return None
        try:
            return self.enum(text)
        except ValueError:
            pass
        lowered = text.lower()
        for member in self.enum:
            if member.value.lower() == lowered:
                return member
        return self.aliases.get(lowered)

    def normalize(self, raw: Optional[str]) -> Optional[Enum]:
        parsed = self.parse(raw)
        return parsed if parsed is not None else self.default


PLATFORM = TaxonomyDomain("platform", Platform)
CATEGORY = TaxonomyDomain("category", Category, default=Category.LIFESTYLE)
FOCUS = TaxonomyDomain(
    "focus",
    Focus,
    default=Focus.TECH_GAMING,
    aliases={"Music": Focus.MUSIC_CULTURE},
    introduced={Focus.MUSIC_CULTURE: 2, Focus.FINANCE: 2},
)
MOOD = TaxonomyDomain("mood", Mood, default=Mood.CALM, aliases={"Relaxed/Calm": Mood.CALM, "Relaxed": Mood.CALM})
SPONSORED = TaxonomyDomain("sponsoredContent", SponsoredContent)

FILTER_DOMAINS: Dict[str, TaxonomyDomain] = {
    "category": CATEGORY,
    "focus": FOCUS,
    "mood": MOOD,
    "sponsoredContent": SPONSORED,
}


def filter_options() -> Dict[str, List[str]]:
    options = {name: domain.values() for name, domain in FILTER_DOMAINS.items()}
    options["sponsoredContent"] = options["sponsoredContent"] + [NOT_SPONSORED]
    return options


def is_valid_filter(filter_type: str, value: str) -> bool:
    return filter_type in FILTER_DOMAINS and value in filter_options()[filter_type]
