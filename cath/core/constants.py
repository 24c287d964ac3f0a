"""Shared enumerations for publications and principals.

Sensitivity is the visibility ceiling of a publication.  Roles and
provenances describe the principal supplied by the auth layer.
"""
from __future__ import annotations

from enum import StrEnum


class Sensitivity(StrEnum):
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"
    CLASSIFIED = "CLASSIFIED"


class UserRole(StrEnum):
    VERIFIED = "VERIFIED"
    INTERNAL_ADMIN_LOCAL = "INTERNAL_ADMIN_LOCAL"
    INTERNAL_ADMIN_CTSC = "INTERNAL_ADMIN_CTSC"
    SYSTEM_ADMIN = "SYSTEM_ADMIN"


class Provenance(StrEnum):
    SSO = "SSO"
    CFT_IDAM = "CFT_IDAM"
    B2C_IDAM = "B2C_IDAM"
    CRIME_IDAM = "CRIME_IDAM"
    MANUAL_UPLOAD = "MANUAL_UPLOAD"


# Admin roles that may see the metadata of restricted publications
# but never their content.
METADATA_ONLY_ROLES: frozenset[str] = frozenset({
    UserRole.INTERNAL_ADMIN_LOCAL,
    UserRole.INTERNAL_ADMIN_CTSC,
})

VALID_SENSITIVITIES: frozenset[str] = frozenset(Sensitivity)

AUDITED_METHODS: frozenset[str] = frozenset({"POST", "PUT", "PATCH", "DELETE"})
