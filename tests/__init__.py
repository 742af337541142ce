"""Test suite for medslice."""
