"""Allowlist enforcement for DSN project IDs and public keys."""

from sentry_tunnel.config import AllowList
from sentry_tunnel.errors.failures import StageFailure, org_not_allowed, project_not_allowed


def check_allowed(project_id: str, public_key: str, allow_list: AllowList) -> StageFailure | None:
    """Return None when both identifiers are permitted.

    The project is checked before the org, so a request failing both is
    reported as a project rejection.
    """
    if not allow_list.permits_project(project_id):
        return project_not_allowed(project_id)
    if not allow_list.permits_org(public_key):
        return org_not_allowed(public_key)
    return None
