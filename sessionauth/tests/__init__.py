"""Tests for :mod:`sessionauth`."""
