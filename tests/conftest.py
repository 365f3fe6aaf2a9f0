"""
Shared fixtures for cdrbac tests.
"""

import pytest

from cdrbac import RbacEngine, Config


EXAMPLE_POLICY = """\
# Argo CD style policy
p, role:readonly, applications, get, */*, allow
p, role:developer, applications, sync, */*, allow
g, eddie, role:developer
"""


@pytest.fixture
def example_policy():
    """Policy from the RBAC tutorial."""
    return EXAMPLE_POLICY


@pytest.fixture
def config():
    """Create a test configuration."""
    return Config(metrics_enabled=True)


@pytest.fixture
def engine(config, example_policy):
    """Engine with the example policy active."""
    engine = RbacEngine.new(config)
    engine.load_policy(example_policy)
    return engine
