"""Storefront server: authentication, sessions and cart lookup."""
