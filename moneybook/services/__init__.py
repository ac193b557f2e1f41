"""External collaborators: identity and storage."""
