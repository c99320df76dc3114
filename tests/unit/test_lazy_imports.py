# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Tests for lazy import patterns in __init__.py modules.

These tests cover the __getattr__ lazy import mechanisms used for the
optional httpx transport.
"""

import pytest


class TestTopLevelLazyImports:
    """Test lazy imports from the top-level request_optimizer module."""

    def test_lazy_httpx_transport_import(self):
        """Cover __getattr__ lazy import of HttpxTransport from top-level module."""
        pytest.importorskip("httpx")
        from request_optimizer import HttpxTransport
        from request_optimizer.transport.httpx_transport import (
            HttpxTransport as DirectHttpxTransport,
        )

        assert HttpxTransport is DirectHttpxTransport

    def test_unknown_attribute_raises_attribute_error(self):
        import request_optimizer

        with pytest.raises(AttributeError, match=r"has no attribute"):
            _ = request_optimizer.NonExistentAttribute

    def test_unknown_attribute_error_message_format(self):
        """Verify the error message format for unknown attributes."""
        import request_optimizer

        with pytest.raises(
            AttributeError,
            match=r"module 'request_optimizer' has no attribute 'FakeClass'",
        ):
            _ = request_optimizer.FakeClass

    def test_core_imports_do_not_need_httpx(self):
        """The engine and its types import without touching the transport module."""
        import request_optimizer

        assert request_optimizer.NetworkEngine is not None
        assert request_optimizer.__version__ == "1.0.0"


class TestTransportLazyImports:
    """Test lazy imports from the transport submodule."""

    def test_lazy_httpx_transport_import(self):
        pytest.importorskip("httpx")
        from request_optimizer.transport import HttpxTransport

        assert hasattr(HttpxTransport, "send")
        assert hasattr(HttpxTransport, "aclose")

    def test_unknown_attribute_raises_attribute_error(self):
        import request_optimizer.transport

        with pytest.raises(
            AttributeError,
            match=r"module 'request_optimizer.transport' has no attribute 'Missing'",
        ):
            _ = request_optimizer.transport.Missing
