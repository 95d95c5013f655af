"""
Data factories for test data generation.

Factories use factory-boy to create realistic test data with sensible defaults.
All factories support async creation via create_async() method.

Usage:
    from tests.factories import UserFactory, NodeFactory

    # Create user
    user = await UserFactory.create_async(db_session, email="custom@test.com")

    # Create node
    node = await NodeFactory.create_async(db_session, organization_id=org.id)
"""

from tests.factories.user import UserFactory
from tests.factories.organization import OrganizationFactory
from tests.factories.permission import PermissionFactory
from tests.factories.node import NodeFactory

__all__ = [
    "UserFactory",
    "OrganizationFactory",
    "PermissionFactory",
    "NodeFactory",
]
