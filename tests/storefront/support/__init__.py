"""Test doubles shared by the favorites tests."""
