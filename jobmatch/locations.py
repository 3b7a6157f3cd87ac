"""
City alias and industry synonym tables used by the relaxation levels.

Ingestion reports city names the way each board spells them: local
spellings ("München"), districts ("Berlin-Mitte") and commuter towns
around a metro area ("Alcobendas"). Expanding a declared city to this
alias set lets the recovery ladder widen search radius without
dropping the city constraint altogether.
"""

from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Mapping, Set

from .normalize import normalize_city, normalize_text

_CITY_VARIANTS: Dict[str, str] = {
    # Germany
    "münchen": "munich",
    "muenchen": "munich",
    "garching bei münchen": "munich",
    "garching": "munich",
    "unterföhring": "munich",
    "köln": "cologne",
    "koeln": "cologne",
    "hamburg-altona": "hamburg",
    "hamburg-harburg": "hamburg",
    "frankfurt am main": "frankfurt",
    "eschborn": "frankfurt",
    "offenbach am main": "frankfurt",
    "berlin-mitte": "berlin",
    "berlin-kreuzberg": "berlin",
    "berlin-friedrichshain": "berlin",
    "potsdam": "berlin",
    # Austria / Czechia / Italy
    "wien": "vienna",
    "wiener neudorf": "vienna",
    "praha": "prague",
    "praha 1": "prague",
    "praha 5": "prague",
    "milano": "milan",
    "sesto san giovanni": "milan",
    "roma": "rome",
    # Spain
    "l'hospitalet de llobregat": "barcelona",
    "el prat de llobregat": "barcelona",
    "sant cugat del vallès": "barcelona",
    "viladecans": "barcelona",
    "alcobendas": "madrid",
    "pozuelo de alarcón": "madrid",
    "tres cantos": "madrid",
    "las rozas de madrid": "madrid",
    "getafe": "madrid",
    "alcalá de henares": "madrid",
    # France
    "levallois-perret": "paris",
    "la défense": "paris",
    "boulogne-billancourt": "paris",
    "issy-les-moulineaux": "paris",
    "neuilly-sur-seine": "paris",
    "saint-denis": "paris",
    # Benelux / Nordics / Switzerland
    "amstelveen": "amsterdam",
    "schiphol": "amsterdam",
    "hoofddorp": "amsterdam",
    "bruxelles": "brussels",
    "brussel": "brussels",
    "zaventem": "brussels",
    "solna": "stockholm",
    "kista": "stockholm",
    "københavn": "copenhagen",
    "frederiksberg": "copenhagen",
    "zürich": "zurich",
    "zug": "zurich",
    "warszawa": "warsaw",
    # UK / Ireland
    "city of london": "london",
    "canary wharf": "london",
    "croydon": "london",
    "greater london": "london",
    "salford": "manchester",
    "dublin 2": "dublin",
    "dublin 4": "dublin",
    "dún laoghaire": "dublin",
}

CITY_CANONICAL: Mapping[str, str] = MappingProxyType(dict(_CITY_VARIANTS))


def _invert(variants: Mapping[str, str]) -> Mapping[str, FrozenSet[str]]:
    grouped: Dict[str, Set[str]] = {}
    for variant, canonical in variants.items():
        grouped.setdefault(canonical, {canonical}).add(variant)
    return MappingProxyType({k: frozenset(v) for k, v in grouped.items()})


CITY_ALIASES: Mapping[str, FrozenSet[str]] = _invert(_CITY_VARIANTS)


def canonical_city(city: str) -> str:
    c = normalize_city(city)
    return CITY_CANONICAL.get(c, c)


def expand_city(city: str) -> FrozenSet[str]:
    """Return the declared city plus its known metro/nearby aliases."""
    c = canonical_city(city)
    if not c:
        return frozenset()
    return CITY_ALIASES.get(c, frozenset({c})) | {normalize_city(city)}


def expand_cities(cities: Iterable[str]) -> FrozenSet[str]:
    result: FrozenSet[str] = frozenset()
    for city in cities:
        result = result | expand_city(city)
    return result


INDUSTRY_SYNONYMS: Mapping[str, FrozenSet[str]] = MappingProxyType({
    "finance": frozenset({"finance", "banking", "investment", "asset management", "private equity", "fintech", "insurance", "accounting"}),
    "banking": frozenset({"banking", "bank", "finance", "investment banking", "fintech"}),
    "fintech": frozenset({"fintech", "payments", "digital banking", "financial technology", "neobank"}),
    "consulting": frozenset({"consulting", "advisory", "professional services", "strategy consulting"}),
    "technology": frozenset({"technology", "tech", "software", "saas", "it services", "internet"}),
    "tech": frozenset({"tech", "technology", "software", "saas", "internet"}),
    "healthcare": frozenset({"healthcare", "health", "medtech", "pharma", "pharmaceutical", "biotech", "life sciences"}),
    "retail": frozenset({"retail", "e-commerce", "ecommerce", "consumer goods", "fmcg", "luxury"}),
    "media": frozenset({"media", "entertainment", "publishing", "advertising", "marketing agency"}),
    "energy": frozenset({"energy", "renewables", "utilities", "oil and gas", "cleantech"}),
    "sustainability": frozenset({"sustainability", "esg", "climate", "cleantech", "renewables", "impact"}),
    "manufacturing": frozenset({"manufacturing", "industrial", "automotive", "engineering", "supply chain"}),
    "logistics": frozenset({"logistics", "supply chain", "transport", "shipping", "mobility"}),
    "public sector": frozenset({"public sector", "government", "non-profit", "ngo", "education"}),
})


def broaden_industry(industry: str) -> FrozenSet[str]:
    key = normalize_text(industry)
    if not key:
        return frozenset()
    return INDUSTRY_SYNONYMS.get(key, frozenset()) | {key}


# Native names a posting may use for a spoken language
LANGUAGE_NAMES: Mapping[str, FrozenSet[str]] = MappingProxyType({
    "english": frozenset({"english"}),
    "german": frozenset({"german", "deutsch"}),
    "french": frozenset({"french", "français", "francais"}),
    "spanish": frozenset({"spanish", "español", "espanol", "castellano"}),
    "italian": frozenset({"italian", "italiano"}),
    "portuguese": frozenset({"portuguese", "português", "portugues"}),
    "dutch": frozenset({"dutch", "nederlands"}),
    "polish": frozenset({"polish", "polski"}),
    "swedish": frozenset({"swedish", "svenska"}),
    "danish": frozenset({"danish", "dansk"}),
    "finnish": frozenset({"finnish", "suomi"}),
    "czech": frozenset({"czech", "čeština", "cestina"}),
    "greek": frozenset({"greek", "ελληνικά"}),
    "russian": frozenset({"russian", "русский"}),
    "ukrainian": frozenset({"ukrainian", "українська"}),
    "turkish": frozenset({"turkish", "türkçe", "turkce"}),
    "arabic": frozenset({"arabic", "العربية"}),
    "hebrew": frozenset({"hebrew", "עברית"}),
    "japanese": frozenset({"japanese", "日本語"}),
    "korean": frozenset({"korean", "한국어"}),
    "chinese": frozenset({"chinese", "mandarin", "cantonese", "中文"}),
    "mandarin": frozenset({"chinese", "mandarin", "中文"}),
    "persian": frozenset({"persian", "farsi", "فارسی"}),
})


def language_names(language: str) -> FrozenSet[str]:
    key = normalize_text(language)
    if not key:
        return frozenset()
    return LANGUAGE_NAMES.get(key, frozenset()) | {key}


COMPANY_SIZE_KEYWORDS: Mapping[str, FrozenSet[str]] = MappingProxyType({
    "startup": frozenset({"startup", "start-up", "early-stage", "seed", "series a", "series b", "founded"}),
    "small": frozenset({"small company", "small team", "10-50", "50-200", "boutique", "small business"}),
    "medium": frozenset({"mid-size", "mid-sized", "medium-sized", "200-500", "500-1000"}),
    "large": frozenset({
        "multinational", "fortune 500", "ftse", "dax", "cac 40", "1000+", "global leader",
        "enterprise", "established",
    }),
})
