"""Built-in role templates for stagegate.

Defines the 7 standard project roles with their permission specs:
1. Project Manager - Runs projects end to end, approves early-stage gates
2. Finance - Budget, funding and payment authority
3. QA Inspector - Quality gates and inspections
4. Executive - Full view/edit/approve, organization administration
5. Auditor - Read-only access to everything
6. Contractor - Bids, work orders and completion reporting
7. Customer - Own project status and final acceptance

These values are a published data contract; other systems read them.
"""

from typing import Any, Dict

from .permissions import AllResources, RolePermissions, WILDCARD


# Holding any of these role ids bypasses every permission check
SUPERUSER_ROLES = frozenset({"superuser", "admin"})


PROJECT_MANAGER_TEMPLATE = {
    "view": WILDCARD,
    "edit": WILDCARD,
    "approve": ["assessment", "bids", "scope"],
    "admin": ["own-projects"],
}

FINANCE_TEMPLATE = {
    "view": WILDCARD,
    "edit": ["budget", "funding", "payments"],
    "approve": ["payment", "budget-change"],
    "admin": [],
}

QA_INSPECTOR_TEMPLATE = {
    "view": ["projects", "qa-reports", "installations"],
    "edit": ["qa-report", "inspection-notes"],
    "approve": ["qa-gate", "final-inspection"],
    "admin": [],
}

EXECUTIVE_TEMPLATE = {
    "view": WILDCARD,
    "edit": WILDCARD,
    "approve": WILDCARD,
    "admin": ["organization"],
}

AUDITOR_TEMPLATE = {
    "view": WILDCARD,
    "edit": [],
    "approve": [],
    "admin": [],
}

CONTRACTOR_TEMPLATE = {
    "view": ["own-projects", "bids", "work-orders"],
    "edit": ["bid-submission", "progress-photos", "completion-report"],
    "approve": [],
    "admin": [],
}

CUSTOMER_TEMPLATE = {
    "view": ["own-project", "status", "documents"],
    "edit": ["contact-info", "survey-response"],
    "approve": ["final-acceptance"],
    "admin": [],
}


ROLE_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "PROJECT_MANAGER": PROJECT_MANAGER_TEMPLATE,
    "FINANCE": FINANCE_TEMPLATE,
    "QA_INSPECTOR": QA_INSPECTOR_TEMPLATE,
    "EXECUTIVE": EXECUTIVE_TEMPLATE,
    "AUDITOR": AUDITOR_TEMPLATE,
    "CONTRACTOR": CONTRACTOR_TEMPLATE,
    "CUSTOMER": CUSTOMER_TEMPLATE,
}


def get_role_template(template_key: str) -> RolePermissions:
    """Build the role for a template, using the template key as role id."""
    template = ROLE_TEMPLATES.get(template_key)
    if template is None:
        raise ValueError(f"Unknown role template: {template_key}")
    return RolePermissions.from_dict(template_key, template)


def get_all_role_templates() -> Dict[str, RolePermissions]:
    """Get every template as a role keyed by template key."""
    return {key: get_role_template(key) for key in ROLE_TEMPLATES}


def superuser_role(role_id: str) -> RolePermissions:
    """A marker role granting every level on every resource."""
    if role_id not in SUPERUSER_ROLES:
        raise ValueError(f"Not a superuser role id: {role_id}")
    everything = AllResources()
    return RolePermissions(
        id=role_id, view=everything, edit=everything, approve=everything, admin=everything
    )
