"""Boundary clients: generation services, artifact store, pricing."""
