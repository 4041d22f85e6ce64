"""Pydantic schemas shared by the storefront services and API."""
