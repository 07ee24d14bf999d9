"""Ambient services shared by the engine and the API.

- **config**: Configuration management using Pydantic Settings
  (``NODEBANANA_`` environment prefix, ``.env`` support)
- **session_log**: Structured per-run log sessions and their file sink
- **images**: Data URL helpers built on Pillow
- **workflow_io**: Workflow document load/save
- **autosave**: Periodic autosave of the open workflow
"""

from nodebanana.core.config import NodeBananaConfig, config

__all__ = ["NodeBananaConfig", "config"]
