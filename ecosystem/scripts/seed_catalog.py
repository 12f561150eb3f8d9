"""
Seed the permission catalog and the global roles.

Permissions are keyed by (action, resource) and global roles by name with
site_id IS NULL, so the script can be re-run safely. Site-owned custom roles
are never touched.

Usage:
    python -m ecosystem.scripts.seed_catalog
"""

import sys
import logging
from typing import Dict, List

from ecosystem.config.permissions_config import PERMISSION_MATRIX
from ecosystem.database.supabase_client import SupabaseClient
from supabase import Client

logger = logging.getLogger(__name__)


def seed_permissions(supabase: Client, permissions: List[Dict]) -> Dict[str, str]:
    """Upsert the permission catalog. Returns permission key -> permission id."""
    logger.info("Seeding permissions...")

    ids_by_key = {}
    created_count = 0
    updated_count = 0

    for perm in permissions:
        try:
            existing = supabase.table("permissions")\
                .select("id")\
                .eq("action", perm["action"])\
                .eq("resource", perm["resource"])\
                .execute()

            if existing.data:
                permission_id = existing.data[0]["id"]
                supabase.table("permissions")\
                    .update({"description": perm["description"]})\
                    .eq("id", permission_id)\
                    .execute()
                updated_count += 1
            else:
                result = supabase.table("permissions").insert({
                    "action": perm["action"],
                    "resource": perm["resource"],
                    "description": perm["description"]
                }).execute()
                permission_id = result.data[0]["id"]
                created_count += 1
                logger.debug(f"Created permission: {perm['key']}")
            ids_by_key[perm["key"]] = permission_id
        except Exception as e:
            logger.error(f"Error processing permission {perm['key']}: {e}")

    logger.info(f"Permissions seeded: {created_count} created, {updated_count} updated")
    return ids_by_key


def seed_roles(supabase: Client, roles: List[Dict], ids_by_key: Dict[str, str]) -> int:
    """Upsert the global roles and reconcile their permission links"""
    logger.info("Seeding global roles...")

    created_count = 0
    updated_count = 0

    for role in roles:
        try:
            existing = supabase.table("roles")\
                .select("id")\
                .eq("name", role["name"])\
                .is_("site_id", "null")\
                .execute()

            if existing.data:
                role_id = existing.data[0]["id"]
                supabase.table("roles")\
                    .update({"description": role["description"]})\
                    .eq("id", role_id)\
                    .execute()
                updated_count += 1
            else:
                result = supabase.table("roles").insert({
                    "name": role["name"],
                    "site_id": None,
                    "description": role["description"]
                }).execute()
                role_id = result.data[0]["id"]
                created_count += 1
                logger.debug(f"Created role: {role['name']}")

            missing = [key for key in role["permissions"] if key not in ids_by_key]
            if missing:
                logger.warning(f"Role {role['name']}: permissions not seeded, skipping {missing}")
            sync_role_permissions(
                supabase, role_id, role["name"],
                {ids_by_key[key] for key in role["permissions"] if key in ids_by_key}
            )
        except Exception as e:
            logger.error(f"Error processing role {role['name']}: {e}")

    logger.info(f"Roles seeded: {created_count} created, {updated_count} updated")
    return created_count + updated_count


def sync_role_permissions(supabase: Client, role_id: str, role_name: str, permission_ids: set):
    """Make the role's permission links equal to permission_ids"""
    existing_result = supabase.table("role_permissions")\
        .select("permission_id")\
        .eq("role_id", role_id)\
        .execute()
    existing_ids = {p["permission_id"] for p in existing_result.data or []}

    to_add = sorted(permission_ids - existing_ids)
    if to_add:
        supabase.table("role_permissions").insert([
            {"role_id": role_id, "permission_id": pid} for pid in to_add
        ]).execute()
        logger.debug(f"Linked {len(to_add)} permissions to role {role_name}")

    to_remove = sorted(existing_ids - permission_ids)
    if to_remove:
        supabase.table("role_permissions")\
            .delete()\
            .eq("role_id", role_id)\
            .in_("permission_id", to_remove)\
            .execute()
        logger.debug(f"Unlinked {len(to_remove)} permissions from role {role_name}")


def seed_catalog(supabase: Client, matrix: Dict = PERMISSION_MATRIX) -> Dict[str, int]:
    ids_by_key = seed_permissions(supabase, matrix["permissions"])
    role_count = seed_roles(supabase, matrix["roles"], ids_by_key)
    return {"permissions": len(ids_by_key), "roles": role_count}


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    try:
        logger.info("Starting catalog seeding...")
        counts = seed_catalog(SupabaseClient.get_service_client())
        logger.info(f"Total: {counts['permissions']} permissions, {counts['roles']} roles processed")
    except Exception as e:
        logger.error(f"Error during seeding: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
