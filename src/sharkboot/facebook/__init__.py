"""Read-only Graph API browsing for the linked Facebook account."""
