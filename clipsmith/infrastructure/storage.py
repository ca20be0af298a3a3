import logging
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


class LocalMediaStorage:
    """
    Stores rendered clips under a local directory and hands back the URL they
    are served from. Stands in for object storage; anything with the same
    `upload(path, key) -> url` method can replace it.
    """

    def __init__(self, root: Path, base_url: str = "/media") -> None:
        self.root = root
        self.base_url = base_url.rstrip("/")

    def upload(self, file_path: Path, key: str) -> str:
        root = self.root.resolve()
        destination = (root / key).resolve()
        if root not in destination.parents:
            raise ValueError(f"Storage key escapes the media root: {key!r}")
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(file_path, destination)
        logger.info("Stored %s as %s", file_path.name, key)
        return f"{self.base_url}/{key}"
