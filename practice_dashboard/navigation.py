"""Sidebar navigation, route mapping and role-based access."""

import logging
from dataclasses import dataclass
from enum import Enum
from urllib.parse import parse_qs, urlparse

from practice_dashboard.practice_records.database.session_repository import (
    Membership,
    SessionRepository,
    User,
)

logger = logging.getLogger(__name__)

CUSTOMER_SETUP_PATH = "/customer-setup"


@dataclass(frozen=True)
class NavItem:
    id: str
    label: str
    route: str
    permission: str | None = None


class Permission(str, Enum):
    VIEW_PATIENTS = "view_patients"
    CREATE_PATIENTS = "create_patients"
    UPDATE_PATIENTS = "update_patients"
    DELETE_PATIENTS = "delete_patients"
    VIEW_BILLING = "view_billing"
    CREATE_BILLING = "create_billing"
    UPDATE_BILLING = "update_billing"
    DELETE_BILLING = "delete_billing"
    VIEW_COLLECTIONS = "view_collections"
    CREATE_COLLECTIONS = "create_collections"
    UPDATE_COLLECTIONS = "update_collections"
    DELETE_COLLECTIONS = "delete_collections"
    VIEW_AUTHORIZATIONS = "view_authorizations"
    CREATE_AUTHORIZATIONS = "create_authorizations"
    UPDATE_AUTHORIZATIONS = "update_authorizations"
    DELETE_AUTHORIZATIONS = "delete_authorizations"
    VIEW_PAYMENTS = "view_payments"
    CREATE_PAYMENTS = "create_payments"
    UPDATE_PAYMENTS = "update_payments"
    DELETE_PAYMENTS = "delete_payments"
    VIEW_ANALYTICS = "view_analytics"
    EXPORT_DATA = "export_data"
    MANAGE_USERS = "manage_users"
    MANAGE_SETTINGS = "manage_settings"
    VIEW_AUDIT_LOGS = "view_audit_logs"
    MANAGE_BACKUPS = "manage_backups"


class Role(str, Enum):
    ADMIN = "admin"
    BILLING_MANAGER = "billing_manager"
    BILLING_STAFF = "billing_staff"
    COLLECTIONS_AGENT = "collections_agent"
    PATIENT = "patient"


P = Permission

ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.ADMIN: frozenset(Permission),
    Role.BILLING_MANAGER: frozenset({
        P.VIEW_PATIENTS, P.CREATE_PATIENTS, P.UPDATE_PATIENTS,
        P.VIEW_BILLING, P.CREATE_BILLING, P.UPDATE_BILLING, P.DELETE_BILLING,
        P.VIEW_COLLECTIONS, P.CREATE_COLLECTIONS, P.UPDATE_COLLECTIONS,
        P.VIEW_AUTHORIZATIONS, P.CREATE_AUTHORIZATIONS, P.UPDATE_AUTHORIZATIONS,
        P.VIEW_PAYMENTS, P.CREATE_PAYMENTS, P.UPDATE_PAYMENTS,
        P.VIEW_ANALYTICS, P.EXPORT_DATA, P.VIEW_AUDIT_LOGS,
    }),
    Role.BILLING_STAFF: frozenset({
        P.VIEW_PATIENTS, P.CREATE_PATIENTS, P.UPDATE_PATIENTS,
        P.VIEW_BILLING, P.CREATE_BILLING, P.UPDATE_BILLING,
        P.VIEW_COLLECTIONS,
        P.VIEW_AUTHORIZATIONS, P.CREATE_AUTHORIZATIONS,
        P.VIEW_PAYMENTS, P.CREATE_PAYMENTS,
    }),
    Role.COLLECTIONS_AGENT: frozenset({
        P.VIEW_PATIENTS,
        P.VIEW_BILLING,
        P.VIEW_COLLECTIONS, P.CREATE_COLLECTIONS, P.UPDATE_COLLECTIONS,
        P.VIEW_PAYMENTS, P.CREATE_PAYMENTS,
    }),
    Role.PATIENT: frozenset({P.VIEW_BILLING, P.VIEW_PAYMENTS}),
}

ROLE_HIERARCHY = {
    Role.ADMIN: 5,
    Role.BILLING_MANAGER: 4,
    Role.BILLING_STAFF: 3,
    Role.COLLECTIONS_AGENT: 2,
    Role.PATIENT: 1,
}


def permissions_for(role: str | Role | None) -> frozenset[Permission]:
    try:
        return ROLE_PERMISSIONS[Role(role)]
    except ValueError:
        return frozenset()


def role_at_least(role: str | Role | None, minimum: str | Role) -> bool:
    try:
        return ROLE_HIERARCHY[Role(role)] >= ROLE_HIERARCHY[Role(minimum)]
    except ValueError:
        return False


# =============================================================================
# Route table
# =============================================================================

MAIN_ITEMS = [
    NavItem("dashboard", "Dashboard", "/"),
    NavItem("scheduling", "Scheduling", "/scheduling", P.VIEW_PATIENTS),
    NavItem("patients", "Patients", "/patients", P.VIEW_PATIENTS),
    NavItem("eligibility-verification", "Eligibility Verification", "/eligibility-verification", P.VIEW_BILLING),
    NavItem("code-validation", "Code Validation", "/code-validation", P.VIEW_BILLING),
    NavItem("authorization", "Authorization", "/authorization", P.VIEW_AUTHORIZATIONS),
    NavItem("claims", "Claims", "/claims", P.VIEW_BILLING),
    NavItem("enhanced-claims", "Enhanced Claims", "/enhanced-claims", P.VIEW_BILLING),
    NavItem("billing-workflow", "Billing Workflow", "/billing-workflow", P.VIEW_BILLING),
    NavItem("quick-actions", "Quick Actions", "/quick-actions"),
    NavItem("reports", "Reports", "/reports", P.VIEW_ANALYTICS),
]

CUSTOMER_SETUP_ITEMS = [
    NavItem(tab, label, f"{CUSTOMER_SETUP_PATH}?tab={tab}", P.MANAGE_SETTINGS)
    for tab, label in [
        ("practices", "Practices"),
        ("providers", "Providers"),
        ("facilities", "Facilities"),
        ("referring-providers", "Referring Providers"),
        ("payers", "Payers"),
        ("payer-agreements", "Payer Agreements"),
        ("collection-agencies", "Collection Agencies"),
    ]
]

NAV_ITEMS = {item.id: item for item in MAIN_ITEMS + CUSTOMER_SETUP_ITEMS}
ROUTES = {item.id: item.route for item in NAV_ITEMS.values()}
_PAGE_BY_PATH = {item.route: item.id for item in MAIN_ITEMS}


def route_for(page_id: str) -> str:
    """Path for a page id; unknown ids raise KeyError."""
    return ROUTES[page_id]


def page_from_url(url: str) -> str | None:
    """Detect the current page id from a path, including customer-setup tabs."""
    parsed = urlparse(url)
    path = parsed.path.rstrip("/") or "/"

    if path == CUSTOMER_SETUP_PATH:
        tab = parse_qs(parsed.query).get("tab", ["practices"])[0]
        return tab if tab in NAV_ITEMS and NAV_ITEMS[tab] in CUSTOMER_SETUP_ITEMS else "practices"

    return _PAGE_BY_PATH.get(path)


# =============================================================================
# Access
# =============================================================================

@dataclass(frozen=True)
class AccessSet:
    """Routes a user may open. Unregistered routes are open to everyone."""

    registered: frozenset[str] = frozenset()
    granted: frozenset[str] = frozenset()
    is_super_admin: bool = False

    def can_access(self, route: str) -> bool:
        if self.is_super_admin:
            return True
        return route not in self.registered or route in self.granted


class Session:
    """Signed-in user, current company and the cached access set."""

    def __init__(
        self,
        user: User,
        memberships: list[Membership],
        repo: SessionRepository | None = None,
    ):
        self.user = user
        self.memberships = memberships
        self.repo = repo or SessionRepository()
        self.current = memberships[0] if memberships else None
        self._access: AccessSet | None = None

    @property
    def company_id(self) -> str | None:
        return self.current.company.id if self.current else None

    @property
    def role(self) -> str | None:
        if self.user.is_super_admin:
            return Role.ADMIN.value
        return self.current.role if self.current else None

    @property
    def access_set(self) -> AccessSet:
        """Fetched once per session and company."""
        if self._access is None:
            registered, granted = self.repo.get_route_access(self.user.id, self.company_id)
            self._access = AccessSet(
                registered=frozenset(registered),
                granted=frozenset(granted),
                is_super_admin=self.user.is_super_admin,
            )
        return self._access

    def switch_company(self, company_id: str) -> bool:
        for membership in self.memberships:
            if membership.company.id == company_id:
                self.current = membership
                self._access = None
                logger.info("Switched to company %s", membership.company.name)
                return True
        return False

    def has_permission(self, permission: str | Permission) -> bool:
        return Permission(permission) in permissions_for(self.role)


class Sidebar:
    """Visible menu items, collapse state and the active page."""

    def __init__(self, session: Session):
        self.session = session
        self.collapsed = False
        self.active_page = "dashboard"

    def _visible(self, item: NavItem) -> bool:
        if item.permission and not self.session.has_permission(item.permission):
            return False
        return self.session.access_set.can_access(item.route)

    def main_items(self) -> list[NavItem]:
        return [item for item in MAIN_ITEMS if self._visible(item)]

    def customer_setup_items(self) -> list[NavItem]:
        return [item for item in CUSTOMER_SETUP_ITEMS if self._visible(item)]

    def toggle(self) -> bool:
        self.collapsed = not self.collapsed
        return self.collapsed

    def select(self, page_id: str) -> str | None:
        """Make a page active and return its route, or None when it is hidden."""
        item = NAV_ITEMS.get(page_id)
        if item is None or not self._visible(item):
            return None
        self.active_page = page_id
        return item.route

    def navigate_to_url(self, url: str) -> str | None:
        page_id = page_from_url(url)
        return self.select(page_id) if page_id else None
