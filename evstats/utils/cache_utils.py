"""
Model caching utilities for EVStats.

Trained models are cached through Flask-Caching, keyed by a cheap
fingerprint of the dataset they were trained on. A fingerprint change
(new trips, another battery size, a bumped model version) is a miss and
triggers retraining.

Cached entries are plain dicts: {"model": model.to_dict() or None,
"info": training info}.
"""

import hashlib
import json
import logging
from typing import Any, Dict, Optional, Sequence, Tuple, Type

from evstats.calculations.constants import SOH_CACHE_VERSION
from evstats.extensions import cache
from evstats.models import Charge, Trip

logger = logging.getLogger(__name__)

RANGE_CACHE_PREFIX = "model:range"
SOH_CACHE_PREFIX = "model:soh"


def generate_cache_key(prefix: str, *args, **kwargs) -> str:
    """
    Generate a cache key from arguments.

    Args:
        prefix: Key prefix (e.g., "model:range")
        *args: Positional arguments
        **kwargs: Keyword arguments

    Returns:
        Cache key string

    Example:
        >>> generate_cache_key("model:range", 12, battery_size=60.0).startswith("model:range:")
        True
    """
    key_parts = [str(prefix)]

    if args:
        key_parts.extend([str(arg) for arg in args])

    if kwargs:
        key_parts.append(json.dumps(sorted(kwargs.items()), sort_keys=True))

    key_hash = hashlib.md5(":".join(key_parts).encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def range_dataset_key(trips: Sequence[Trip], battery_size: float, soh: float) -> str:
    """Fingerprint: trip count, first trip date, battery size and SoH."""
    first_date = trips[0].date if trips else ""
    return generate_cache_key(
        RANGE_CACHE_PREFIX, len(trips), first_date, battery_size=battery_size, soh=soh
    )


def soh_dataset_key(charges: Sequence[Charge], battery_size: float) -> str:
    """Fingerprint: charge count, first charge date, battery size and model version."""
    first_date = charges[0].date if charges else ""
    return generate_cache_key(
        SOH_CACHE_PREFIX, len(charges), first_date, battery_size=battery_size, version=SOH_CACHE_VERSION
    )


def get_cached_model(key: str, model_cls: Type) -> Optional[Tuple[Any, Dict]]:
    """
    Look up a cached (model, info) pair.

    Returns:
        (model or None, info) on a hit, None on a miss or unreadable entry
    """
    entry = cache.get(key)
    if entry is None:
        logger.debug(f"Cache miss: {key}")
        return None

    try:
        model_data = entry.get("model")
        model = model_cls.from_dict(model_data) if model_data else None
        return model, dict(entry["info"])
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        logger.warning(f"Discarding unreadable cache entry {key}: {e}")
        cache.delete(key)
        return None


def store_model(key: str, model: Any, info: Dict, timeout: Optional[int] = None) -> None:
    """Cache a trained model (or None for an untrained result) with its info."""
    entry = {"model": model.to_dict() if model else None, "info": dict(info)}
    if not cache.set(key, entry, timeout=timeout):
        logger.warning(f"Failed to cache model under {key}")
    else:
        logger.debug(f"Cached model: {key}")
