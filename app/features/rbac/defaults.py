"""
Default permission catalog and roles for the store admin.

seed_defaults is idempotent: existing permissions (by action and resource)
and roles (by name) are left alone.
"""

from dataclasses import dataclass

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import atomic
from app.core.exceptions import ValidationError
from app.features.rbac.assignments import role_assignments
from app.features.rbac.catalog import permission_catalog
from app.features.rbac.policies import PolicySpec
from app.features.rbac.roles import role_registry
from app.models.role import Permission, Policy, PolicyDecision, Role

logger = structlog.get_logger(__name__)

SUPER_ADMIN_ROLE = "Super Admin"

# (action, resource, name, category)
DEFAULT_PERMISSIONS: list[tuple[str, str, str, str]] = [
    # Products
    ("read", "/admin/products", "View Products", "Products"),
    ("write", "/admin/products", "Create/Edit Products", "Products"),
    ("delete", "/admin/products", "Delete Products", "Products"),
    ("read", "/admin/product-categories", "View Categories", "Products"),
    ("write", "/admin/product-categories", "Create/Edit Categories", "Products"),
    ("delete", "/admin/product-categories", "Delete Categories", "Products"),
    ("read", "/admin/collections", "View Collections", "Products"),
    ("write", "/admin/collections", "Create/Edit Collections", "Products"),
    ("delete", "/admin/collections", "Delete Collections", "Products"),
    # Orders
    ("read", "/admin/orders", "View Orders", "Orders"),
    ("write", "/admin/orders", "Update Orders", "Orders"),
    ("delete", "/admin/orders", "Cancel Orders", "Orders"),
    ("read", "/admin/draft-orders", "View Draft Orders", "Orders"),
    ("write", "/admin/draft-orders", "Create/Edit Draft Orders", "Orders"),
    ("delete", "/admin/draft-orders", "Delete Draft Orders", "Orders"),
    # Customers
    ("read", "/admin/customers", "View Customers", "Customers"),
    ("write", "/admin/customers", "Create/Edit Customers", "Customers"),
    ("delete", "/admin/customers", "Delete Customers", "Customers"),
    ("read", "/admin/customer-groups", "View Customer Groups", "Customers"),
    ("write", "/admin/customer-groups", "Create/Edit Customer Groups", "Customers"),
    ("delete", "/admin/customer-groups", "Delete Customer Groups", "Customers"),
    # Marketing
    ("read", "/admin/promotions", "View Promotions", "Marketing"),
    ("write", "/admin/promotions", "Create/Edit Promotions", "Marketing"),
    ("delete", "/admin/promotions", "Delete Promotions", "Marketing"),
    ("read", "/admin/gift-cards", "View Gift Cards", "Marketing"),
    ("write", "/admin/gift-cards", "Create/Edit Gift Cards", "Marketing"),
    ("delete", "/admin/gift-cards", "Delete Gift Cards", "Marketing"),
    # Pricing
    ("read", "/admin/price-lists", "View Price Lists", "Pricing"),
    ("write", "/admin/price-lists", "Create/Edit Price Lists", "Pricing"),
    ("delete", "/admin/price-lists", "Delete Price Lists", "Pricing"),
    # Inventory
    ("read", "/admin/inventory-items", "View Inventory", "Inventory"),
    ("write", "/admin/inventory-items", "Update Inventory", "Inventory"),
    ("read", "/admin/stock-locations", "View Stock Locations", "Inventory"),
    ("write", "/admin/stock-locations", "Create/Edit Stock Locations", "Inventory"),
    ("delete", "/admin/stock-locations", "Delete Stock Locations", "Inventory"),
    ("read", "/admin/reservations", "View Reservations", "Inventory"),
    ("write", "/admin/reservations", "Create/Edit Reservations", "Inventory"),
    ("delete", "/admin/reservations", "Delete Reservations", "Inventory"),
    # Settings
    ("read", "/admin/regions", "View Regions", "Settings"),
    ("write", "/admin/regions", "Create/Edit Regions", "Settings"),
    ("delete", "/admin/regions", "Delete Regions", "Settings"),
    ("read", "/admin/currencies", "View Currencies", "Settings"),
    ("write", "/admin/currencies", "Update Currencies", "Settings"),
    ("read", "/admin/tax-rates", "View Tax Rates", "Settings"),
    ("write", "/admin/tax-rates", "Create/Edit Tax Rates", "Settings"),
    ("delete", "/admin/tax-rates", "Delete Tax Rates", "Settings"),
    ("read", "/admin/shipping-options", "View Shipping Options", "Settings"),
    ("write", "/admin/shipping-options", "Create/Edit Shipping Options", "Settings"),
    ("delete", "/admin/shipping-options", "Delete Shipping Options", "Settings"),
    ("read", "/admin/fulfillment-providers", "View Fulfillment Providers", "Settings"),
    ("write", "/admin/fulfillment-providers", "Configure Fulfillment Providers", "Settings"),
    ("read", "/admin/payment-providers", "View Payment Providers", "Settings"),
    ("write", "/admin/payment-providers", "Configure Payment Providers", "Settings"),
    ("read", "/admin/store", "View Store Settings", "Settings"),
    ("write", "/admin/store", "Update Store Settings", "Settings"),
    ("read", "/admin/sales-channels", "View Sales Channels", "Settings"),
    ("write", "/admin/sales-channels", "Create/Edit Sales Channels", "Settings"),
    ("delete", "/admin/sales-channels", "Delete Sales Channels", "Settings"),
    # Administration
    ("read", "/admin/users", "View Users", "Administration"),
    ("write", "/admin/users", "Create/Edit Users", "Administration"),
    ("delete", "/admin/users", "Delete Users", "Administration"),
    ("read", "/admin/invites", "View Invites", "Administration"),
    ("write", "/admin/invites", "Send Invites", "Administration"),
    ("delete", "/admin/invites", "Delete Invites", "Administration"),
    ("read", "/admin/rbac", "View RBAC Settings", "Administration"),
    ("write", "/admin/rbac", "Manage RBAC Settings", "Administration"),
    ("read", "/admin/api-keys", "View API Keys", "Administration"),
    ("write", "/admin/api-keys", "Create/Revoke API Keys", "Administration"),
    # General
    ("write", "/admin/uploads", "Upload Files", "General"),
    # Custom admin screens
    ("read", "/admin/bulk-editor", "View Bulk Editor", "Custom"),
    ("write", "/admin/bulk-editor", "Use Bulk Editor", "Custom"),
    ("read", "/admin/email-templates", "View Email Templates", "Custom"),
    ("write", "/admin/email-templates", "Edit Email Templates", "Custom"),
]

# name -> (description, {resource: actions}); None grants everything
DEFAULT_ROLES: dict[str, tuple[str, dict[str, tuple[str, ...]] | None]] = {
    SUPER_ADMIN_ROLE: ("Full access to all features", None),
    "Editor": (
        "Can view and edit products, orders, and customers",
        {
            "/admin/products": ("read", "write"),
            "/admin/product-categories": ("read", "write"),
            "/admin/collections": ("read", "write"),
            "/admin/orders": ("read", "write"),
            "/admin/customers": ("read", "write"),
            "/admin/inventory-items": ("read", "write"),
            "/admin/uploads": ("write",),
            "/admin/bulk-editor": ("read", "write"),
        },
    ),
    "Viewer": (
        "Read-only access to most features",
        {
            "/admin/products": ("read",),
            "/admin/product-categories": ("read",),
            "/admin/collections": ("read",),
            "/admin/orders": ("read",),
            "/admin/customers": ("read",),
            "/admin/inventory-items": ("read",),
            "/admin/promotions": ("read",),
            "/admin/bulk-editor": ("read",),
        },
    ),
    "Order Manager": (
        "Full access to orders and customers",
        {
            "/admin/orders": ("read", "write", "delete"),
            "/admin/draft-orders": ("read", "write", "delete"),
            "/admin/customers": ("read", "write"),
            "/admin/customer-groups": ("read", "write"),
        },
    ),
}


@dataclass(frozen=True)
class SeedResult:
    permissions_created: int
    roles_created: int


async def _seed_permissions(db: AsyncSession) -> int:
    existing = await permission_catalog.list_permissions(db)
    existing_keys = {(permission.action, permission.resource) for permission in existing}

    missing = [
        Permission(
            action=action,
            resource=resource,
            name=name,
            category=category,
            is_system=True,
        )
        for action, resource, name, category in DEFAULT_PERMISSIONS
        if (action, resource) not in existing_keys
    ]

    if missing:
        async with atomic(db):
            db.add_all(missing)

    return len(missing)


async def _ensure_super_admin_role(db: AsyncSession) -> tuple[Role, bool]:
    """
    Create the Super Admin system role if needed and top up its policies
    so it allows every permission in the catalog.
    """
    role = await role_registry.get_by_name(db, SUPER_ADMIN_ROLE)
    created = role is None

    async with atomic(db):
        if role is None:
            description = DEFAULT_ROLES[SUPER_ADMIN_ROLE][0]
            role = Role(name=SUPER_ADMIN_ROLE, description=description, is_system=True)
            db.add(role)
            await db.flush()

        covered = await db.execute(select(Policy.permission_id).where(Policy.role_id == role.id))
        covered_ids = set(covered.scalars().all())

        permissions = await permission_catalog.list_permissions(db)
        db.add_all(
            Policy(role_id=role.id, permission_id=permission.id, decision=PolicyDecision.ALLOW.value)
            for permission in permissions
            if permission.id not in covered_ids
        )

    await db.refresh(role)
    return role, created


async def seed_defaults(db: AsyncSession) -> SeedResult:
    """Create the default catalog and roles that don't exist yet."""
    permissions_created = await _seed_permissions(db)

    by_key = {
        (permission.action, permission.resource): permission
        for permission in await permission_catalog.list_permissions(db)
    }

    roles_created = 0
    for name, (description, grants) in DEFAULT_ROLES.items():
        if grants is None:
            _, created = await _ensure_super_admin_role(db)
            roles_created += int(created)
            continue

        if await role_registry.get_by_name(db, name):
            logger.debug("default_role_exists", name=name)
            continue

        policies = [
            PolicySpec(permission_id=by_key[(action, resource)].id, decision=PolicyDecision.ALLOW)
            for resource, actions in grants.items()
            for action in actions
            if (action, resource) in by_key
        ]
        await role_registry.create_with_policies(db, name, description, policies)
        roles_created += 1

    logger.info(
        "rbac_defaults_seeded",
        permissions_created=permissions_created,
        roles_created=roles_created,
    )
    return SeedResult(permissions_created=permissions_created, roles_created=roles_created)


async def ensure_super_admin(db: AsyncSession, user_id: str) -> Role:
    """
    Make user_id a super admin.

    Raises:
        ValidationError: If user_id is blank
    """
    if not user_id or not user_id.strip():
        raise ValidationError("user_id is required")

    role, _ = await _ensure_super_admin_role(db)
    await role_assignments.assign(db, user_id, role.id)

    logger.info("super_admin_assigned", user_id=user_id, role_id=role.id)
    return role
