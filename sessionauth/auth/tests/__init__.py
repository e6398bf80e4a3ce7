"""Tests for :mod:`sessionauth.auth`."""
