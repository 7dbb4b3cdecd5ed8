"""Platform collaborator interfaces and raw payloads."""
