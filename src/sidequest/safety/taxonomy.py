# taxonomy.py
# Fixed OSM tag taxonomy for safety analysis.
# Rules are data: (tag key, allowed values or None for "any value").

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from sidequest.navigation.nav_config import EMERGENCY_AMENITIES


@dataclass(frozen=True)
class TagRule:
    """Matches a feature whose `key` tag is set to one of `values` (None = any)."""
    key: str
    values: Optional[FrozenSet[str]] = None

    def matches(self, tags: Mapping[str, str]) -> bool:
        value = tags.get(self.key)
        if not value:
            return False
        return self.values is None or value in self.values


def _rules(table: Dict[str, Optional[Iterable[str]]]) -> Tuple[TagRule, ...]:
    return tuple(
        TagRule(key, None if values is None else frozenset(values))
        for key, values in table.items()
    )


def matches_any(rules: Iterable[TagRule], tags: Mapping[str, str]) -> bool:
    return any(rule.matches(tags) for rule in rules)


# ---------------------------------------------------------------------------
# Classification rules
# ---------------------------------------------------------------------------

RISKY_RULES = _rules({
    'landuse':  ['industrial', 'military', 'quarry'],
    'man_made': ['wastewater_plant', 'water_treatment', 'tower'],
    'military': None,
    'railway':  ['rail', 'subway', 'tram'],
    'power':    None,
    'highway':  ['motorway', 'trunk', 'primary'],
    'natural':  ['cliff', 'water'],
    'tourism':  ['attraction'],
    # Also listed as emergency services below; risky is checked first so
    # these never reach the emergency bucket.
    'amenity':  list(EMERGENCY_AMENITIES),
})

EMERGENCY_RULES = _rules({'amenity': list(EMERGENCY_AMENITIES)})

LIGHTING_RULES = _rules({'highway': ['street_lamp']})

TRANSPORTATION_RULES = _rules({'highway': None, 'railway': None})

SAFE_RULES = _rules({
    'landuse': ['residential', 'commercial', 'retail'],
    'amenity': ['school', 'university', 'library', 'community_centre', 'park'],
    'leisure': ['park', 'playground', 'garden'],
    'tourism': ['hotel', 'museum', 'information'],
})

# First match wins, in this order.
CLASSIFICATION_ORDER: Tuple[Tuple[str, Tuple[TagRule, ...]], ...] = (
    ('risky',          RISKY_RULES),
    ('emergency',      EMERGENCY_RULES),
    ('lighting',       LIGHTING_RULES),
    ('transportation', TRANSPORTATION_RULES),
    ('safe',           SAFE_RULES),
)


# ---------------------------------------------------------------------------
# Provider query taxonomy (what to fetch around a point)
# ---------------------------------------------------------------------------

SAFETY_QUERY_RULES = _rules({
    'landuse': ['industrial', 'military', 'quarry'],
    'highway': ['motorway', 'trunk', 'primary', 'secondary', 'street_lamp'],
    'railway': ['rail', 'subway', 'tram'],
    'power':   None,
    'natural': ['cliff', 'water', 'wetland'],
    'amenity': list(EMERGENCY_AMENITIES) + ['school', 'university', 'library', 'community_centre'],
})


def emergency_query_rules(kind: str = "all") -> Tuple[TagRule, ...]:
    """Query rules for one emergency amenity type, or all of them."""
    if kind == "all":
        return EMERGENCY_RULES
    if kind not in EMERGENCY_AMENITIES:
        raise ValueError(f"Unknown emergency service type: {kind}")
    return (TagRule('amenity', frozenset([kind])),)


def rules_to_tags(rules: Iterable[TagRule]) -> Dict[str, object]:
    """Convert rules to the osmnx `tags` argument: {key: True | [values]}."""
    tags: Dict[str, object] = {}
    for rule in rules:
        if rule.values is None:
            tags[rule.key] = True
        elif tags.get(rule.key) is not True:
            tags[rule.key] = sorted(set(tags.get(rule.key, [])) | rule.values)
    return tags
