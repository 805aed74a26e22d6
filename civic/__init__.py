"""Civic issue reporting backend."""
