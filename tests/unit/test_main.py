"""Unit tests for the entry point helpers."""

from __future__ import annotations

import sys

import pytest

from dualmem.main import parse_args


class TestParseArgs:
    def test_default_transport(self, monkeypatch):
        """stdio is the default transport."""
        monkeypatch.setattr(sys, "argv", ["dualmem"])
        assert parse_args().transport == "stdio"

    def test_http_transport(self, monkeypatch):
        """Other transports can be selected."""
        monkeypatch.setattr(sys, "argv", ["dualmem", "--transport", "streamable-http"])
        assert parse_args().transport == "streamable-http"

    def test_unknown_transport(self, monkeypatch):
        """Unknown transports are rejected."""
        monkeypatch.setattr(sys, "argv", ["dualmem", "--transport", "carrier-pigeon"])
        with pytest.raises(SystemExit):
            parse_args()
