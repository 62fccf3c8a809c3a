# Permission code constants for type-safe permission checks

# Wildcard granted to system admins; a sentinel, never a real code
WILDCARD = "*"

# Actions understood by capability queries
CREATE = "create"
READ = "read"
UPDATE = "update"
DELETE = "delete"

ACTIONS = (CREATE, READ, UPDATE, DELETE)

# Upper-case suffixes checked next to the "resource:action" form.
# "read" maps to VIEW, not READ (legacy naming, kept as-is).
ACTION_SUFFIXES = {
    CREATE: ["CREATE"],
    READ: ["VIEW"],
    UPDATE: ["UPDATE"],
    DELETE: ["DELETE"],
}

# Page visibility accepts the same pair as a read query
PAGE_VIEW_ACTION = READ

# Resource codes used by the console
ROLES = "roles"
PERMISSIONS = "permissions"
PERMISSION_GROUPS = "permissionGroups"
USERS = "users"

# Upper-case codes of the console's own pages
ROLES_VIEW = "ROLES_VIEW"
ROLES_UPDATE = "ROLES_UPDATE"
PERMISSION_GROUPS_VIEW = "PERMISSIONGROUPS_VIEW"

# Resources reported by the capability endpoint when none are asked for
CONSOLE_RESOURCES = (ROLES, PERMISSIONS, PERMISSION_GROUPS, USERS)
