"""Sales-call practice backend: transcript reconstruction, scoring and coaching."""
