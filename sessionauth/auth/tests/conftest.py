"""Test harness wiring for :mod:`sessionauth.auth.tests`."""

import pytest
from flask import Flask


@pytest.fixture(autouse=True)
def _request_context(request):
    """
    Push a request context for the decorator tests.

    ``mock.patch`` inspects the original ``flask.request`` proxy before
    replacing it, which raises outside of a request context.
    """
    if request.module.__name__.endswith('test_decorators'):
        with Flask('test').test_request_context():
            yield
    else:
        yield
