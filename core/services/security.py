"""
Input sanitation, per-user rate limiting and field validators.

Free-text fields entered by staff end up in reports and PDF exports, so
every text field written through the API passes :func:`sanitize_input`
first.  The rate limiter is a fixed window counter kept in the Django
cache; it only works across processes when the cache is shared (Redis).
"""
from __future__ import annotations

import math
import re
import time
from typing import Any, Iterable, Optional

import bleach
from django.core.cache import cache

from core.exceptions import CareAppError, ErrorType

SCRIPT_BLOCK_RE = re.compile(r'<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>', re.IGNORECASE)

# Entities that are turned back into characters before the final strip.
SAFE_ENTITIES = (
    ('&lt;', '<'),
    ('&gt;', '>'),
    ('&quot;', '"'),
    ('&#x27;', "'"),
    ('&#x2F;', '/'),
)


def sanitize_input(text: Optional[Any]) -> str:
    if not text:
        return ''
    value = SCRIPT_BLOCK_RE.sub('', str(text).strip())
    value = bleach.clean(value, tags=set(), attributes={}, strip=True, strip_comments=True)
    # bleach escapes bare ampersands; undo that before decoding entities
    value = value.replace('&amp;', '&')
    for entity, char in SAFE_ENTITIES:
        value = value.replace(entity, char)
    value = value.replace('<', '').replace('>', '').replace('\0', '')
    return value.strip()


def sanitize_fields(data: dict, fields: Iterable[str]) -> dict:
    """Return a copy of ``data`` with the named string / list fields sanitized."""
    out = dict(data)
    for field in fields:
        value = out.get(field)
        if isinstance(value, str):
            out[field] = sanitize_input(value)
        elif isinstance(value, (list, tuple)):
            out[field] = [sanitize_input(v) if isinstance(v, str) else v for v in value]
    return out


def check_rate_limit(
    user,
    operation: str = 'incident_create',
    max_requests: int = 10,
    window_seconds: int = 3600,
) -> None:
    """Count one request for ``user``; raise RATE_LIMIT once over the window limit."""
    now = time.time()
    key = f'ratelimit:{operation}:{getattr(user, "pk", user)}'
    entry = cache.get(key)
    if not entry or entry['reset_at'] < now:
        cache.set(key, {'count': 1, 'reset_at': now + window_seconds}, timeout=window_seconds)
        return
    if entry['count'] >= max_requests:
        minutes = math.ceil((entry['reset_at'] - now) / 60)
        raise CareAppError(
            f'Rate limit exceeded. You can perform this action again in {minutes} minutes.',
            ErrorType.RATE_LIMIT,
            context={'operation': operation},
        )
    entry['count'] += 1
    cache.set(key, entry, timeout=max(1, math.ceil(entry['reset_at'] - now)))


# ---------------------------------------------------------------------
# Food / fluid
# ---------------------------------------------------------------------
FOOD_FLUID_SECTIONS = ('midnight-7am', '7am-12pm', '12pm-5pm', '5pm-midnight')
AMOUNTS_EATEN = ('None', '1/4', '1/2', '3/4', 'All')
MAX_FLUID_ML = 2000


def _invalid(message: str, field: str) -> CareAppError:
    return CareAppError(message, ErrorType.VALIDATION, context={'field': field})


def validate_food_fluid_log(
    *,
    section: Optional[str] = None,
    type_of_food_drink: Optional[str] = None,
    amount_eaten: Optional[str] = None,
    fluid_consumed_ml: Optional[int] = None,
    signature: Optional[str] = None,
    **_ignored: Any,
) -> None:
    if section and section not in FOOD_FLUID_SECTIONS:
        raise _invalid(f'Invalid section: {section}', 'section')
    if not type_of_food_drink or not type_of_food_drink.strip():
        raise _invalid('Food/drink type is required', 'typeOfFoodDrink')
    if len(type_of_food_drink) > 100:
        raise _invalid('Food/drink type must not exceed 100 characters', 'typeOfFoodDrink')
    if amount_eaten and amount_eaten not in AMOUNTS_EATEN:
        raise _invalid(f'Invalid amount eaten: {amount_eaten}', 'amountEaten')
    if fluid_consumed_ml is not None and not (0 <= fluid_consumed_ml <= MAX_FLUID_ML):
        raise _invalid('Fluid volume must be between 0-2000ml', 'fluidConsumedMl')
    if not signature or not signature.strip():
        raise _invalid('Signature is required', 'signature')
    if len(signature) > 50:
        raise _invalid('Signature must not exceed 50 characters', 'signature')
