"""Tenants (clients), users and login providers."""
