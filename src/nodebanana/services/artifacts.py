"""File-backed artifact store for generated images.

Every successful image generation can be handed to the artifact store,
which writes the image and its prompt next to each other in a directory:

- ``<artifact_id>.png`` holds the image bytes
- ``<artifact_id>.txt`` holds the prompt

Carousel history entries only keep the artifact id; the image is loaded
back from the store on demand.  Writes are best-effort from the engine's
point of view: the executor logs a failed save and carries on.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import re
from pathlib import Path
from typing import Protocol

from nodebanana.core.images import decode_bytes

logger = logging.getLogger(__name__)

_SAFE_ID_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class ArtifactStore(Protocol):
    async def save(self, directory: Path, image: str, prompt: str, artifact_id: str) -> Path: ...

    async def load(self, directory: Path, artifact_id: str) -> str | None: ...


def _artifact_path(directory: Path, artifact_id: str, suffix: str) -> Path:
    if not _SAFE_ID_RE.match(artifact_id) or artifact_id in {".", ".."}:
        raise ValueError(f"Invalid artifact id: {artifact_id!r}")
    return Path(directory) / f"{artifact_id}{suffix}"


class FileArtifactStore:
    """Store artifacts as files under a caller-supplied directory."""

    async def save(self, directory: Path, image: str, prompt: str, artifact_id: str) -> Path:
        """Write *image* and *prompt* under *directory*.

        Args:
            directory: Target directory (created if missing).
            image: Image data URL.
            prompt: Prompt used to generate the image.
            artifact_id: Identifier used as the file stem.

        Returns:
            Path of the written image file.
        """
        return await asyncio.to_thread(self._save_sync, Path(directory), image, prompt, artifact_id)

    async def load(self, directory: Path, artifact_id: str) -> str | None:
        """Return the image stored under *artifact_id* as a data URL, or ``None``."""
        return await asyncio.to_thread(self._load_sync, Path(directory), artifact_id)

    def _save_sync(self, directory: Path, image: str, prompt: str, artifact_id: str) -> Path:
        image_path = _artifact_path(directory, artifact_id, ".png")
        directory.mkdir(parents=True, exist_ok=True)
        image_path.write_bytes(decode_bytes(image))
        _artifact_path(directory, artifact_id, ".txt").write_text(prompt, encoding="utf-8")
        logger.info("Saved artifact %s to %s", artifact_id, image_path)
        return image_path

    def _load_sync(self, directory: Path, artifact_id: str) -> str | None:
        image_path = _artifact_path(directory, artifact_id, ".png")
        if not image_path.exists():
            return None
        encoded = base64.b64encode(image_path.read_bytes()).decode("ascii")
        return f"data:image/png;base64,{encoded}"
