"""
Make a user a super admin.

The user ID is the identity system's ID for the user (the `sub` claim of
their access token).

Usage:
    python scripts/setup_superadmin.py <user_id>
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.database import db_manager
from app.features.rbac.defaults import ensure_super_admin


async def setup_superadmin(user_id: str) -> None:
    """Assign the Super Admin role to user_id."""
    db_manager.init()

    try:
        async with db_manager.session_scope() as db:
            role = await ensure_super_admin(db, user_id)
    finally:
        await db_manager.close()

    print(f"✅ {user_id} is now a {role.name} (role {role.id})")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python scripts/setup_superadmin.py <user_id>")
        sys.exit(1)

    asyncio.run(setup_superadmin(sys.argv[1]))
