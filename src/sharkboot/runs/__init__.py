"""Run lifecycle tracking on remote threads."""
