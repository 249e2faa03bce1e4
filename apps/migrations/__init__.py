"""Migrations application package."""
