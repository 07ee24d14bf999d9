"""Workflow graph data model and the live store holding it."""
