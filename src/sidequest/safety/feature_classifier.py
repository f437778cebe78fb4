# feature_classifier.py
# Sorts raw map features into safety buckets using the tag taxonomy.

from typing import Iterable, List, Mapping, Optional

from sidequest.navigation.nav_config import MAJOR_ROAD_TYPES
from sidequest.safety.models import FeatureBucket, MapFeature
from sidequest.safety.taxonomy import CLASSIFICATION_ORDER, matches_any


def classify_tags(tags: Mapping[str, str]) -> Optional[str]:
    """
    Bucket name for a tag set, or None if no rule matches.

    Categories are tried in CLASSIFICATION_ORDER; the first match wins.
    """
    for bucket_name, rules in CLASSIFICATION_ORDER:
        if matches_any(rules, tags):
            return bucket_name
    return None


def classify_features(features: Iterable[MapFeature]) -> FeatureBucket:
    """Build a fresh FeatureBucket. Unclassified and untagged features are dropped."""
    bucket = FeatureBucket()
    for feature in features:
        if not feature.tags:
            continue
        bucket_name = classify_tags(feature.tags)
        if bucket_name is not None:
            getattr(bucket, bucket_name).append(feature)
    return bucket


def major_roads(features: Iterable[MapFeature]) -> List[MapFeature]:
    """Features tagged as motorway, trunk or primary highways."""
    return [f for f in features if f.tags.get('highway') in MAJOR_ROAD_TYPES]


def hazard_label(feature: MapFeature) -> str:
    """Short name for a risky feature, used in warning text."""
    tags = feature.tags
    return tags.get('landuse') or tags.get('highway') or tags.get('railway') or 'hazard'
