"""Static access policy: which roles hold which capabilities.

The lifecycle engine and analytics aggregator never check permissions
themselves. The authorization layer in front of them consults this table
before calling a manual transition or a reporting query.
"""

from enum import Enum


class Capability(str, Enum):
    CREATE_JOBS = "create_jobs"
    DELETE_JOBS = "delete_jobs"
    VIEW_ANALYTICS = "view_analytics"
    MANAGE_ADMINS = "manage_admins"


# Roles with a fixed grant. Other roles rely on per-account grants.
ROLE_CAPABILITIES: dict[str, frozenset[Capability]] = {
    "main_admin": frozenset(Capability),
    "admin": frozenset(),
}

# Which capability each core operation requires.
OPERATION_CAPABILITIES: dict[str, Capability] = {
    "process_transitions": Capability.CREATE_JOBS,
    "set_status": Capability.CREATE_JOBS,
    "reactivate_job": Capability.CREATE_JOBS,
    "move_to_dump": Capability.CREATE_JOBS,
    "move_to_inactive": Capability.CREATE_JOBS,
    "create_job": Capability.CREATE_JOBS,
    "delete_job": Capability.DELETE_JOBS,
    "dashboard": Capability.VIEW_ANALYTICS,
    "range_query": Capability.VIEW_ANALYTICS,
    "top_jobs": Capability.VIEW_ANALYTICS,
    "top_companies": Capability.VIEW_ANALYTICS,
    "job_report": Capability.VIEW_ANALYTICS,
    "trends": Capability.VIEW_ANALYTICS,
    "export_json": Capability.VIEW_ANALYTICS,
    "export_csv": Capability.VIEW_ANALYTICS,
}


def capabilities_for(
    role: str,
    granted: frozenset[Capability] | set[Capability] = frozenset(),
) -> frozenset[Capability]:
    """Return the effective capabilities of an account: role grant plus its own grants."""
    if role not in ROLE_CAPABILITIES:
        msg = f"Unknown role '{role}'"
        raise ValueError(msg)
    return ROLE_CAPABILITIES[role] | frozenset(granted)


def is_allowed(
    role: str,
    capability: Capability,
    granted: frozenset[Capability] | set[Capability] = frozenset(),
) -> bool:
    return capability in capabilities_for(role, granted)


def can_call(
    role: str,
    operation: str,
    granted: frozenset[Capability] | set[Capability] = frozenset(),
) -> bool:
    """Check an operation by name. Operations not in the table need no capability."""
    required = OPERATION_CAPABILITIES.get(operation)
    if required is None:
        return True
    return is_allowed(role, required, granted)
