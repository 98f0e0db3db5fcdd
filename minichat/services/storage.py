import logging
import os
import re
import uuid
from pathlib import Path
from typing import Optional

from fastapi.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

STORED_NAME_PATTERN = re.compile(r"^[0-9a-f]{32}_(.+)$")


class FileStorage:
    """Directory-backed blob store; every blob is keyed by a unique prefix plus its original name."""

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def _write(self, stored_name: str, data: bytes) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / stored_name
        path.write_bytes(data)
        return path

    async def save(self, file_name: str, data: bytes) -> str:
        safe_name = os.path.basename(file_name.replace("\\", "/")) or "file"
        stored_name = f"{uuid.uuid4().hex}_{safe_name}"
        path = await run_in_threadpool(self._write, stored_name, data)
        logger.info("Stored upload %s (%d bytes)", path, len(data))
        return stored_name

    def path_for(self, stored_name: str) -> Optional[Path]:
        path = self.directory / os.path.basename(stored_name)
        if not path.is_file():
            return None
        return path


def original_file_name(stored_name: Optional[str]) -> Optional[str]:
    if not stored_name:
        return None
    match = STORED_NAME_PATTERN.match(stored_name)
    return match.group(1) if match else stored_name
