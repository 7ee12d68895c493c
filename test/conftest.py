"""Shared pytest fixtures for cxxdb tests."""

import logging

import pytest

from cxxdb import visitor as visitor_module
from cxxdb.libclang_backend import (
    is_system_libclang_available,
)
from cxxdb.visitor import (
    DeclarationVisitor,
)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "libclang: test needs the system libclang library")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if is_system_libclang_available():
        return
    skip = pytest.mark.skip(reason="libclang not available")
    for item in items:
        if "libclang" in item.keywords:
            item.add_marker(skip)


@pytest.fixture(autouse=True)
def reset_cxxdb_logger():
    """Undo the handler and level the CLI installs on the package logger."""
    yield
    logger = logging.getLogger("cxxdb")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture(autouse=True)
def fake_cursor_queries(request, monkeypatch):
    """Answer the queries that go straight to libclang from fake cursor attributes."""
    if request.node.get_closest_marker("libclang") is not None:
        return
    monkeypatch.setattr(visitor_module, "templated_kind", lambda cursor: cursor.templated_kind)
    monkeypatch.setattr(visitor_module, "enum_constant_value", lambda cursor: cursor.enum_value)


@pytest.fixture
def visitor() -> DeclarationVisitor:
    return DeclarationVisitor()


@pytest.fixture
def project_visitor() -> DeclarationVisitor:
    """A visitor rooted at ``/project/include``."""
    return DeclarationVisitor(directories=["/project/include"])
