"""Clients for the OpenAI and Meta Graph REST APIs."""
