"""
Create the RBAC tables and seed the default permission catalog and roles.

Safe to run repeatedly: existing permissions and roles are left alone.

Usage:
    python scripts/seed_rbac.py
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.database import Base, db_manager
from app.core.performance import PerformanceMonitor
from app.features.rbac.defaults import DEFAULT_PERMISSIONS, DEFAULT_ROLES, seed_defaults
from app import models  # noqa: F401  (registers every table on Base.metadata)


async def seed_rbac() -> None:
    """Create tables if needed, then seed the defaults."""
    print("🔐 Seeding RBAC data...")

    db_manager.init()

    try:
        async with db_manager.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        async with PerformanceMonitor("seed_rbac_defaults"):
            async with db_manager.session_scope() as db:
                result = await seed_defaults(db)
    finally:
        await db_manager.close()

    print(f"  ✅ Permissions created: {result.permissions_created} (catalog has {len(DEFAULT_PERMISSIONS)} defaults)")
    print(f"  ✅ Roles created: {result.roles_created} (of {len(DEFAULT_ROLES)} defaults)")
    print("🎉 RBAC seeding complete")


if __name__ == "__main__":
    asyncio.run(seed_rbac())
