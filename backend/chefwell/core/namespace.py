"""
Tenant namespace validation.

Every statement that names a partition (schema creation, drop, handle
construction) goes through ``validate_namespace`` first. Identifiers cannot be
bound as statement parameters, so this allowlist is what keeps caller input
out of administrative DDL.
"""
import re

from chefwell.core.errors import InvalidNamespace


MAX_NAMESPACE_LENGTH = 63
NAMESPACE_PREFIX = "tenant_"
NAMESPACE_PATTERN = re.compile(r"^tenant_[a-z0-9_]+$")

# System schemas of the storage engines we run on (PostgreSQL, SQLite)
RESERVED_NAMESPACES = frozenset(
    {
        "public",
        "information_schema",
        "pg_catalog",
        "pg_toast",
        "pg_temp",
        "pg_toast_temp",
        "main",
        "temp",
        "sqlite_master",
        "sqlite_temp_master",
        "tenant",
        "tenant_default",
        "tenant_public",
        "tenant_template",
    }
)


def validate_namespace(name) -> str:
    """
    Validate a tenant namespace identifier.

    Args:
        name: Candidate namespace

    Returns:
        The namespace, unchanged

    Raises:
        InvalidNamespace: empty, too long, wrong grammar or reserved
    """
    if not isinstance(name, str):
        raise InvalidNamespace("namespace must be a string")
    if not name:
        raise InvalidNamespace("namespace is empty")
    if len(name) > MAX_NAMESPACE_LENGTH:
        raise InvalidNamespace(
            f"namespace exceeds {MAX_NAMESPACE_LENGTH} characters"
        )
    # fullmatch so a trailing newline cannot slip past "$"
    if not NAMESPACE_PATTERN.fullmatch(name):
        raise InvalidNamespace("namespace must match tenant_[a-z0-9_]+")
    if name.lower() in RESERVED_NAMESPACES:
        raise InvalidNamespace(f"namespace '{name}' is reserved")
    return name


def is_valid_namespace(name) -> bool:
    try:
        validate_namespace(name)
    except InvalidNamespace:
        return False
    return True
