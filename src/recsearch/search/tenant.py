"""
Tenant scoping.

``resolve_tenant_key`` is the default resolution collaborator: it derives the
tenant key from the caller's ``submission-id`` (``<base>.<major>.<minor>``,
e.g. ``SUB123456.1.0`` -> ``SUB123456``).

``scope_to_tenant`` is the guard every compiled plan passes through. The
resolved key is opaque to it; it only refuses to build a plan without one.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from ..errors import UnresolvedTenant
from .plan import MatchClause, QueryPlan, TenantClause, TextClause

logger = logging.getLogger("recsearch.tenant")

DEFAULT_TENANT_FIELD = "submissionBaseNr"

_SUBMISSION_ID = re.compile(r"^(?P<base>[A-Za-z0-9_-]+)\.\d+\.\d+$")


def resolve_tenant_key(submission_id: str | None) -> str:
    """
    Resolve the tenant key from a submission id.

    Args:
        submission_id: Raw ``submission-id`` header value.

    Returns:
        The submission base number used as tenant key.

    Raises:
        UnresolvedTenant: If the id is missing, blank or malformed.
    """
    if submission_id is None or not submission_id.strip():
        raise UnresolvedTenant("submission-id is missing")

    match = _SUBMISSION_ID.match(submission_id.strip())
    if match is None:
        logger.warning("[TENANT] Rejected malformed submission-id")
        raise UnresolvedTenant(
            "submission-id is malformed",
            detail={"expected": "<base>.<major>.<minor>"},
        )
    return match.group("base")


def scope_to_tenant(
    tenant_key: str | None,
    text_clauses: Iterable[TextClause],
    match_clauses: Iterable[MatchClause],
    tenant_field: str = DEFAULT_TENANT_FIELD,
) -> QueryPlan:
    """
    Fold the tenant predicate into a plan, after every caller clause.

    Raises:
        UnresolvedTenant: If ``tenant_key`` is missing or blank.
    """
    if tenant_key is None or not str(tenant_key).strip():
        raise UnresolvedTenant("tenant key is not resolved")

    return QueryPlan(
        text_clauses=tuple(text_clauses),
        match_clauses=tuple(match_clauses),
        tenant=TenantClause(path=tenant_field, tenant_key=tenant_key),
    )
