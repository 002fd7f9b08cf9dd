from sqlalchemy import MetaData
from sqlalchemy.orm import declarative_base


# Placeholder schema for partition tables. Each tenant handle rewrites it to the
# tenant namespace through schema_translate_map; it is never a real schema.
TENANT_SCHEMA = "tenant"

TenantBase = declarative_base(metadata=MetaData(schema=TENANT_SCHEMA))
