"""Test suite for the CSP Strategy backend."""
