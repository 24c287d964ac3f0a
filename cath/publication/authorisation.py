"""Publication access rules: sensitivity, role and provenance.

Sensitivity sets the ceiling of visibility; the principal's role and
provenance narrow it:

==========  ==============================  =====================================
Sensitivity Metadata                        Content
==========  ==============================  =====================================
PUBLIC      everyone                        everyone
PRIVATE     any authenticated principal     authenticated, except metadata-only
                                            admin roles
CLASSIFIED  SYSTEM_ADMIN; VERIFIED with     same as metadata
            matching provenance
==========  ==============================  =====================================

A missing or unrecognised sensitivity is treated as ``CLASSIFIED``.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from cath.core.auth import Principal
from cath.core.constants import METADATA_ONLY_ROLES, VALID_SENSITIVITIES, Sensitivity, UserRole
from cath.db.models import Artefact

logger = logging.getLogger(__name__)

DenialReason = Literal["sensitivity", "role"]

ACCESS_DENIED_MESSAGES: dict[DenialReason, dict[str, dict[str, str]]] = {
    "sensitivity": {
        "en": {
            "title": "Access Denied",
            "message": "You do not have permission to view this publication.",
        },
        "cy": {
            "title": "Mynediad wedi'i Wrthod",
            "message": "Nid oes gennych ganiatâd i weld y cyhoeddiad hwn.",
        },
    },
    "role": {
        "en": {
            "title": "Access Denied",
            "message": "You do not have permission to view the data for this publication. You can view metadata only.",
        },
        "cy": {
            "title": "Mynediad wedi'i Wrthod",
            "message": "Nid oes gennych ganiatâd i weld y data ar gyfer y cyhoeddiad hwn. Gallwch weld metadata yn unig.",
        },
    },
}


@dataclass(slots=True, frozen=True)
class AccessDecision:
    allowed: bool
    reason: DenialReason | None = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = AccessDecision(allowed=True)
DENY_SENSITIVITY = AccessDecision(allowed=False, reason="sensitivity")
DENY_ROLE = AccessDecision(allowed=False, reason="role")


def effective_sensitivity(artefact: Artefact) -> Sensitivity:
    value = (artefact.sensitivity or "").upper()
    if value not in VALID_SENSITIVITIES:
        logger.warning(
            "Artefact %s has unrecognised sensitivity %r; treating as CLASSIFIED",
            artefact.artefact_id,
            artefact.sensitivity,
        )
        return Sensitivity.CLASSIFIED
    return Sensitivity(value)


def _classified_access(principal: Principal, artefact: Artefact) -> AccessDecision:
    if principal.role == UserRole.SYSTEM_ADMIN:
        return ALLOW
    if principal.role == UserRole.VERIFIED:
        if principal.provenance and principal.provenance == artefact.provenance:
            return ALLOW
        return DENY_SENSITIVITY
    if principal.role not in METADATA_ONLY_ROLES and principal.role is not None:
        logger.warning("Role %r is not covered by the CLASSIFIED access rules", principal.role)
    return DENY_SENSITIVITY


def can_access_publication_metadata(principal: Principal | None, artefact: Artefact) -> AccessDecision:
    """Decide whether *principal* may see the metadata of *artefact*."""
    sensitivity = effective_sensitivity(artefact)

    if sensitivity == Sensitivity.PUBLIC:
        return ALLOW
    if principal is None:
        return DENY_SENSITIVITY
    if sensitivity == Sensitivity.PRIVATE:
        return ALLOW
    return _classified_access(principal, artefact)


def can_access_publication_data(principal: Principal | None, artefact: Artefact) -> AccessDecision:
    """Decide whether *principal* may see the content of *artefact*.

    Strictly narrower than metadata access: local and CTSC admins never
    see the content of a restricted publication.
    """
    sensitivity = effective_sensitivity(artefact)

    if sensitivity == Sensitivity.PUBLIC:
        return ALLOW
    if principal is None:
        return DENY_SENSITIVITY
    if principal.role in METADATA_ONLY_ROLES:
        return DENY_ROLE
    return can_access_publication_metadata(principal, artefact)


def filter_accessible_publications(
    principal: Principal | None, artefacts: Iterable[Artefact]
) -> list[Artefact]:
    """Keep only the artefacts whose content *principal* may view."""
    return [a for a in artefacts if can_access_publication_data(principal, a)]


def filter_publications_for_summary(
    principal: Principal | None, artefacts: Iterable[Artefact]
) -> list[Artefact]:
    """Keep only the artefacts whose metadata *principal* may view."""
    return [a for a in artefacts if can_access_publication_metadata(principal, a)]
