"""
Permission Catalog and Global Role Configuration
This config defines the (action, resource) permission matrix for every portal
and administrative area, plus the global roles provisioned at system setup.
Used by the seed script to populate/update the permissions, roles and
role_permissions tables. Tenant-custom roles are created through the API.
"""

from ecosystem.modules.authz.models import PermissionAction, WILDCARD_RESOURCE

A = PermissionAction

# Resources and the actions that exist for them
RESOURCES = {
    "sites": {
        "actions": [A.CREATE, A.READ, A.UPDATE, A.DELETE, A.MANAGE],
        "description": "Tenant (site) records"
    },
    "users": {
        "actions": [A.CREATE, A.READ, A.UPDATE, A.DELETE, A.MANAGE],
        "description": "User accounts"
    },
    "roles": {
        "actions": [A.READ, A.MANAGE],
        "description": "Roles, permissions and role assignments"
    },
    "settings": {
        "actions": [A.READ, A.UPDATE, A.EXPORT, A.IMPORT],
        "description": "Site settings"
    },
    "admin_panel": {
        "actions": [A.READ],
        "description": "Ecosystem administration panel"
    },
    "conference_portal": {
        "actions": [A.READ, A.MANAGE],
        "description": "Conference portal"
    },
    "hotel_portal": {
        "actions": [A.READ, A.MANAGE],
        "description": "Hotel portal"
    },
    "church_portal": {
        "actions": [A.READ, A.MANAGE],
        "description": "Church portal"
    },
    "school_portal": {
        "actions": [A.READ, A.MANAGE],
        "description": "School portal"
    },
    "bank_portal": {
        "actions": [A.READ, A.MANAGE],
        "description": "Bank portal"
    },
    "hr_portal": {
        "actions": [A.READ, A.MANAGE],
        "description": "HR portal"
    },
    "comms_portal": {
        "actions": [A.READ, A.MANAGE],
        "description": "Communications portal"
    },
}

# Descriptions that read better than the generated "<Action> <resource>"
SPECIFIC_DESCRIPTIONS = {
    (A.MANAGE, WILDCARD_RESOURCE): "Full access to every resource in every site",
    (A.MANAGE, "roles"): "Create, edit, delete and assign roles",
    (A.READ, "admin_panel"): "Open the administration panel",
    (A.EXPORT, "settings"): "Export site settings",
    (A.IMPORT, "settings"): "Import site settings",
}

SUPER_ADMIN_ROLE = "SUPER_ADMIN"

# Global roles (site_id is null). Permissions are (action, resource) pairs.
GLOBAL_ROLES = {
    SUPER_ADMIN_ROLE: {
        "description": "Unrestricted access across all sites",
        "permissions": [(A.MANAGE, WILDCARD_RESOURCE)]
    },
    "SITE_ADMIN": {
        "description": "Administers the sites it is assigned to",
        "permissions": [
            (A.READ, "conference_portal"),
            (A.READ, "hotel_portal"),
            (A.MANAGE, "roles"),
            (A.READ, "settings"),
            (A.UPDATE, "settings"),
        ]
    },
    "CONFERENCE_MANAGER": {
        "description": "Runs conference registration and attendees",
        "permissions": [(A.READ, "conference_portal")]
    },
    "HOTEL_MANAGER": {
        "description": "Runs rooms and bookings",
        "permissions": [(A.READ, "hotel_portal")]
    },
    "MAINTENANCE_MANAGER": {
        "description": "Handles hotel maintenance requests",
        "permissions": [(A.READ, "hotel_portal")]
    },
    "BANK_MANAGER": {
        "description": "Bank portal access",
        "permissions": [(A.READ, "bank_portal")]
    },
    "CHURCH_ADMIN": {
        "description": "Church portal access",
        "permissions": [(A.READ, "church_portal")]
    },
    "SCHOOL_ADMIN": {
        "description": "School portal access",
        "permissions": [(A.READ, "school_portal")]
    },
    "HR_MANAGER": {
        "description": "HR portal access",
        "permissions": [(A.READ, "hr_portal")]
    },
    "COMMS_MANAGER": {
        "description": "Communications portal access",
        "permissions": [(A.READ, "comms_portal")]
    },
    "GUEST": {
        "description": "Authenticated user without privileges",
        "permissions": []
    },
}


def permission_key(action: PermissionAction, resource: str) -> str:
    """Stable string form of a permission, e.g. ``roles:manage``."""
    return f"{resource}:{PermissionAction(action).value.lower()}"


# Generate permission matrix
def get_permission_matrix():
    """
    Returns a dictionary with the permission catalog and the global roles
    Format: {
        "permissions": [
            {"key": "sites:create", "action": "CREATE", "resource": "sites", "description": "..."},
            ...
        ],
        "roles": [
            {
                "name": "SITE_ADMIN",
                "description": "...",
                "permissions": ["conference_portal:read", ...]
            },
            ...
        ]
    }
    """
    catalog = [(A.MANAGE, WILDCARD_RESOURCE, "all resources")]
    for resource, resource_config in RESOURCES.items():
        for action in resource_config["actions"]:
            catalog.append((action, resource, resource_config["description"]))

    permissions = []
    for action, resource, resource_description in catalog:
        description = SPECIFIC_DESCRIPTIONS.get(
            (action, resource),
            f"{action.value.capitalize()} {resource_description.lower()}"
        )
        permissions.append({
            "key": permission_key(action, resource),
            "action": action.value,
            "resource": resource,
            "description": description
        })

    known_keys = {p["key"] for p in permissions}
    roles = []
    for role_name, role_config in GLOBAL_ROLES.items():
        role_permissions = sorted({permission_key(a, r) for a, r in role_config["permissions"]})
        unknown = [key for key in role_permissions if key not in known_keys]
        if unknown:
            raise ValueError(f"Role {role_name} references permissions missing from the catalog: {unknown}")
        roles.append({
            "name": role_name,
            "description": role_config["description"],
            "permissions": role_permissions
        })

    return {
        "permissions": permissions,
        "roles": roles
    }


# Export the matrix for use in seed scripts
PERMISSION_MATRIX = get_permission_matrix()
