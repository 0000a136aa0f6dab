"""
Shared Enumerations for FarmLink Models.

All string enumerations for type-safe field constraints.
StrEnum values compare equal to their string equivalents, so a role
read back from storage as ``"farmer"`` still equals ``Role.FARMER``.
"""

from __future__ import annotations
from enum import StrEnum


class Role(StrEnum):
    """Roles a marketplace user may hold.  A user may hold several."""

    BUYER = "buyer"
    FARMER = "farmer"
    OFFICER = "officer"


class TokenStatus(StrEnum):
    """Outcome of decoding the stored bearer token's expiry claim."""

    MISSING = "MISSING"
    MALFORMED = "MALFORMED"
    EXPIRED = "EXPIRED"
    VALID = "VALID"


class RouteState(StrEnum):
    """States of the route-gating state machine."""

    LOADING = "LOADING"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    AUTHENTICATED_UNAUTHORIZED = "AUTHENTICATED_UNAUTHORIZED"
    AUTHENTICATED_AUTHORIZED = "AUTHENTICATED_AUTHORIZED"


class RouteAction(StrEnum):
    """What the UI should do with a gated route."""

    PLACEHOLDER = "PLACEHOLDER"
    REDIRECT = "REDIRECT"
    RENDER = "RENDER"


class FixtureMissPolicy(StrEnum):
    """How the fixture responder answers a lookup for an unknown id.

    ``FIRST_RECORD`` masks absence as presence by returning the first
    entry of the collection; it exists for scripted demo flows only.
    """

    FIRST_RECORD = "first_record"
    NOT_FOUND = "not_found"
