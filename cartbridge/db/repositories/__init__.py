"""Repositories over host settings tables."""
