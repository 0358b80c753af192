# tests/conftest.py
"""Shared fixtures for the declinit test-suite."""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from declinit.analyzer import Analyzer
from declinit.config import AnalyzerConfig
from declinit.diagnostics import DiagnosticCollector
from declinit.type_model import DEFAULT_CONTEXT, DOUBLE, INT, aggregate


@pytest.fixture
def widget():
    """``struct Widget { Widget(); Widget(int); Widget(int, double); };``"""
    return aggregate("Widget", (), (INT,), (INT, DOUBLE))


@pytest.fixture
def no_default():
    """An aggregate whose only constructor takes an int."""
    return aggregate("NoDefault", (INT,))


@pytest.fixture
def context(widget, no_default):
    return (DEFAULT_CONTEXT
            .with_aggregate(widget)
            .with_aggregate(no_default)
            .with_function("make_widget", widget))


@pytest.fixture
def collector():
    return DiagnosticCollector("x")


@pytest.fixture
def analyzer(context):
    return Analyzer(context)


@pytest.fixture
def lenient_analyzer(context):
    return Analyzer(context, AnalyzerConfig(narrowing_is_error=False))
