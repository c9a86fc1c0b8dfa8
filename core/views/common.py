"""
Small helpers shared by the API views.
"""
from __future__ import annotations

from typing import Optional, Type

from django.db import models
from django.shortcuts import get_object_or_404

from ..models import User
from ..permissions import can_access_resident, ensure_same_organization, get_authenticated_user


def current_user(request) -> User:
    return get_authenticated_user(request)


def scoped_object(model: Type[models.Model], pk, user: User, **lookup):
    """Fetch ``model`` by pk, 404 for records of another organization."""
    obj = get_object_or_404(model, pk=pk, **lookup)
    ensure_same_organization(user, obj)
    return obj


def resident_for(request, resident_id):
    user = current_user(request)
    return user, can_access_resident(user, resident_id)


def iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def int_param(request, name: str, default: Optional[int] = None, maximum: Optional[int] = None) -> Optional[int]:
    raw = request.query_params.get(name)
    try:
        value = int(raw) if raw not in (None, '') else default
    except (TypeError, ValueError):
        value = default
    if value is not None and maximum is not None:
        value = min(value, maximum)
    return value


def bool_param(request, name: str) -> Optional[bool]:
    raw = request.query_params.get(name)
    if raw is None or raw == '':
        return None
    return raw.lower() in {'1', 'true', 'yes'}
