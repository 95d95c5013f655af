from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Import models so they register with Base.metadata
from dockmanager.models import user, organization, permission, node  # noqa: E402,F401
