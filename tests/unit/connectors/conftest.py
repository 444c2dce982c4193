"""Fixtures for dialect connector tests."""

import pytest

from schemadesk.database.base import BaseDialectConnector
from schemadesk.database.connectors import InterbaseConnector, MySQLConnector, PostgreSQLConnector


@pytest.fixture
def base_connector(pools, identity_factory):
    """Engine-neutral connector on the fake driver."""
    return BaseDialectConnector(identity_factory("mysql"), pools, pools.config)


@pytest.fixture
def mysql_connector(pools, mysql_identity):
    return MySQLConnector(mysql_identity, pools, pools.config)


@pytest.fixture
def postgresql_connector(pools, postgresql_identity, fake_driver):
    """PostgreSQL connector talking to a scripted 14.x server."""
    fake_driver.respond("SHOW server_version", [("14.5",)])
    return PostgreSQLConnector(postgresql_identity, pools, pools.config)


@pytest.fixture
def interbase_connector(pools, interbase_identity):
    return InterbaseConnector(interbase_identity, pools, pools.config)
