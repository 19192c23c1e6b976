"""Assistants mirrored between the local database and OpenAI."""
