"""
Category mapping between user career-path selections and posting tags.

Signup forms store short values ("finance"), display labels
("Finance & Investment") or legacy hyphenated tags. Postings are tagged
with canonical categories ("finance-investment"). Every table here is a
read-only mapping built once at import time.
"""

from types import MappingProxyType
from typing import FrozenSet, Iterable, Mapping

WORK_TYPE_CATEGORIES: FrozenSet[str] = frozenset({
    "strategy-business-design",
    "data-analytics",
    "marketing-growth",
    "tech-transformation",
    "operations-supply-chain",
    "finance-investment",
    "sales-client-success",
    "product-innovation",
    "sustainability-esg",
    "retail-luxury",
    "entrepreneurship",
    "technology",
})

ALL_CATEGORIES = "all-categories"

CAREER_PATH_LABELS: Mapping[str, str] = MappingProxyType({
    "strategy": "Strategy & Business Design",
    "data": "Data & Analytics",
    "sales": "Sales & Client Success",
    "marketing": "Marketing & Growth",
    "finance": "Finance & Investment",
    "operations": "Operations & Supply Chain",
    "product": "Product & Innovation",
    "tech": "Tech & Transformation",
    "sustainability": "Sustainability & ESG",
    "unsure": "Not Sure Yet / General",
})

FORM_TO_CATEGORY: Mapping[str, str] = MappingProxyType({
    "strategy": "strategy-business-design",
    "data": "data-analytics",
    "sales": "sales-client-success",
    "marketing": "marketing-growth",
    "finance": "finance-investment",
    "operations": "operations-supply-chain",
    "product": "product-innovation",
    "tech": "tech-transformation",
    "sustainability": "sustainability-esg",
    "unsure": ALL_CATEGORIES,
    # Legacy values
    "retail-luxury": "retail-luxury",
    "entrepreneurship": "entrepreneurship",
})

LABEL_TO_CATEGORY: Mapping[str, str] = MappingProxyType({
    "strategy & business design": "strategy-business-design",
    "finance & investment": "finance-investment",
    "sales & client success": "sales-client-success",
    "marketing & growth": "marketing-growth",
    "data & analytics": "data-analytics",
    "operations & supply chain": "operations-supply-chain",
    "product & innovation": "product-innovation",
    "tech & transformation": "tech-transformation",
    "sustainability & esg": "sustainability-esg",
    "not sure yet / general": ALL_CATEGORIES,
    # Legacy labels
    "tech & engineering": "tech-transformation",
    "retail & luxury": "retail-luxury",
    "entrepreneurship": "entrepreneurship",
})


def map_career_path(value: str) -> FrozenSet[str]:
    """
    Translate one career-path selection into canonical category tags.

    Args:
        value: Form value, display label or canonical tag

    Returns:
        Set of canonical tags; "unsure" expands to every work-type category.
        Unknown values pass through unchanged.
    """
    key = " ".join(value.strip().lower().split())
    if not key:
        return frozenset()
    category = FORM_TO_CATEGORY.get(key) or LABEL_TO_CATEGORY.get(key) or key
    if category == ALL_CATEGORIES:
        return WORK_TYPE_CATEGORIES
    return frozenset({category})


def categories_for_paths(paths: Iterable[str]) -> FrozenSet[str]:
    """Union of canonical tags for every selected career path."""
    result: FrozenSet[str] = frozenset()
    for path in paths:
        result = result | map_career_path(path)
    return result


def career_path_label(value: str) -> str:
    return CAREER_PATH_LABELS.get(value, value)


def is_recognized_category(tag: str) -> bool:
    return tag in WORK_TYPE_CATEGORIES


# Seniority tags share the posting category column but are not career paths
SENIORITY_LEVELS: FrozenSet[str] = frozenset({
    "early-career",
    "experienced",
    "internship",
    "business-graduate",
    "graduate",
})


def career_categories(tags: Iterable[str]) -> FrozenSet[str]:
    """Posting tags minus seniority markers."""
    return frozenset(t for t in tags if t not in SENIORITY_LEVELS)
