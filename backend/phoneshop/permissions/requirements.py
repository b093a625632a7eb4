# Overview: Per-endpoint access requirements, declared once as a static table.

"""
Route Access Requirements

Every Flask endpoint maps to exactly one RouteAuthRequirement:
- public: no authentication at all
- authenticated: any logged-in principal
- roles: logged-in principal whose rank meets at least one listed role

The table below is the single source of truth. It is built at import time
and handed to the access guard as configuration; nothing inspects view
functions at request time. Endpoints missing from the table are treated as
authenticated-only and reported at startup.
"""

from __future__ import annotations

from dataclasses import dataclass

from .roles import Role, is_valid_role


@dataclass(frozen=True)
class RouteAuthRequirement:
    is_public: bool = False
    required_roles: frozenset[str] = frozenset()

    @classmethod
    def public(cls) -> "RouteAuthRequirement":
        return cls(is_public=True)

    @classmethod
    def authenticated(cls) -> "RouteAuthRequirement":
        return cls()

    @classmethod
    def roles(cls, *roles: str) -> "RouteAuthRequirement":
        if not roles:
            raise ValueError("roles() needs at least one role; use authenticated() instead")
        for role in roles:
            if not is_valid_role(role):
                raise ValueError(f"Unknown role: {role}")
        return cls(required_roles=frozenset(roles))

    def describe(self) -> str:
        if self.is_public:
            return "public"
        if not self.required_roles:
            return "authenticated"
        return "any of: " + ", ".join(sorted(self.required_roles))


PUBLIC = RouteAuthRequirement.public()
AUTHENTICATED = RouteAuthRequirement.authenticated()
OWNER = RouteAuthRequirement.roles(Role.OWNER)
MANAGER = RouteAuthRequirement.roles(Role.MANAGER)
CASHIER = RouteAuthRequirement.roles(Role.CASHIER)
TECHNICIAN = RouteAuthRequirement.roles(Role.TECHNICIAN)


ROUTE_REQUIREMENTS: dict[str, RouteAuthRequirement] = {
    # -- system --
    "system.health": PUBLIC,
    "system.version": PUBLIC,

    # -- auth --
    "auth.login_route": PUBLIC,
    "auth.logout_route": AUTHENTICATED,
    "auth.me_route": AUTHENTICATED,

    # -- users --
    "users.list_users_route": OWNER,
    "users.create_user_route": OWNER,
    "users.update_user_route": OWNER,

    # -- customers --
    "customers.create_customer_route": MANAGER,
    "customers.list_customers_route": CASHIER,
    "customers.search_customers_route": CASHIER,
    "customers.get_customer_route": CASHIER,
    "customers.get_customer_balance_route": CASHIER,
    "customers.get_customer_transactions_route": CASHIER,
    "customers.update_customer_route": MANAGER,
    "customers.delete_customer_route": OWNER,

    # -- suppliers --
    "suppliers.create_supplier_route": MANAGER,
    "suppliers.list_suppliers_route": CASHIER,
    "suppliers.search_suppliers_route": CASHIER,
    "suppliers.get_supplier_route": CASHIER,
    "suppliers.get_supplier_balance_route": CASHIER,
    "suppliers.get_supplier_transactions_route": MANAGER,
    "suppliers.update_supplier_route": MANAGER,
    "suppliers.delete_supplier_route": OWNER,

    # -- phones --
    "phones.list_phones_route": CASHIER,
    "phones.list_available_phones_route": CASHIER,
    "phones.phone_statistics_route": MANAGER,
    "phones.get_phone_by_barcode_route": CASHIER,
    "phones.get_phone_by_imei_route": CASHIER,
    "phones.get_phone_route": CASHIER,
    "phones.get_phone_history_route": CASHIER,
    "phones.update_phone_route": MANAGER,
    "phones.delete_phone_route": OWNER,

    # -- purchases --
    "purchases.create_purchase_route": MANAGER,
    "purchases.list_purchases_route": CASHIER,
    "purchases.get_purchase_route": CASHIER,
    "purchases.update_purchase_route": MANAGER,
    "purchases.delete_purchase_route": OWNER,

    # -- sales --
    "sales.create_sale_route": CASHIER,
    "sales.list_sales_route": CASHIER,
    "sales.get_customer_sales_route": CASHIER,
    "sales.get_customer_debt_route": CASHIER,
    "sales.get_sale_route": CASHIER,
    "sales.update_sale_route": CASHIER,
    "sales.delete_sale_route": OWNER,

    # -- repairs --
    "repairs.create_repair_route": TECHNICIAN,
    "repairs.list_repairs_route": TECHNICIAN,
    "repairs.get_phone_repairs_route": TECHNICIAN,
    "repairs.get_repair_route": TECHNICIAN,
    "repairs.update_repair_route": TECHNICIAN,
    "repairs.delete_repair_route": MANAGER,

    # -- payments --
    "payments.apply_payment_route": CASHIER,
    "payments.list_payments_route": CASHIER,
    "payments.get_payment_route": CASHIER,
    "payments.apply_customer_payment_route": CASHIER,
    "payments.apply_supplier_payment_route": MANAGER,
    "payments.get_customer_payments_route": CASHIER,
    "payments.get_supplier_payments_route": MANAGER,
    "payments.get_sale_payments_route": CASHIER,
    "payments.get_purchase_payments_route": MANAGER,
    "payments.delete_payment_route": MANAGER,

    # -- reports --
    "reports.sales_report_route": MANAGER,
    "reports.purchase_report_route": MANAGER,
    "reports.repair_report_route": MANAGER,
    "reports.financial_summary_route": OWNER,
    "reports.dashboard_route": CASHIER,

    # -- workers --
    "workers.create_worker_route": OWNER,
    "workers.list_workers_route": MANAGER,
    "workers.list_active_workers_route": MANAGER,
    "workers.get_worker_route": MANAGER,
    "workers.get_salary_history_route": OWNER,
    "workers.update_worker_route": OWNER,
    "workers.delete_worker_route": OWNER,
    "workers.create_worker_payment_route": OWNER,
    "workers.list_worker_payments_route": OWNER,
    "workers.delete_worker_payment_route": OWNER,
}


def get_requirement(endpoint: str | None, table: dict[str, RouteAuthRequirement] | None = None) -> RouteAuthRequirement:
    """Requirement for an endpoint; unmapped endpoints need authentication."""
    table = ROUTE_REQUIREMENTS if table is None else table
    if endpoint is None:
        return AUTHENTICATED
    return table.get(endpoint, AUTHENTICATED)
