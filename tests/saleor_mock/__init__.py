"""Saleor fakes for integration testing.

This package provides in-memory stand-ins for everything the configurator
talks to, so diff, pipeline and CLI tests run without a Saleor instance.

Key Features:
- ``FakeSaleor``: one object implementing every bootstrap service protocol,
  recording calls and raising injected failures
- ``FakeGraphQLClient``: routes documents by operation name to canned data
- ``FakeSession``: scripted ``requests.Session`` for transport retry tests
- Configuration builders for common fixtures

Usage:
    from saleor_mock import FakeSaleor, make_product

    saleor = FakeSaleor(local=SaleorConfig(products=[make_product("a")]))
    saleor.fail("bootstrap_product", ValueError("Category not found: x"), entity="a")
    context = DeploymentContext(services=saleor.container(), summary=summary)
"""

from .builders import (
    make_category,
    make_channel,
    make_config,
    make_model,
    make_product,
    make_product_type,
)
from .graphql import FakeGraphQLClient, operation_name
from .services import FakeSaleor
from .transport import FakeResponse, FakeSession, no_sleep

__all__ = [
    "FakeGraphQLClient",
    "FakeResponse",
    "FakeSaleor",
    "FakeSession",
    "make_category",
    "make_channel",
    "make_config",
    "make_model",
    "make_product",
    "make_product_type",
    "no_sleep",
    "operation_name",
]
