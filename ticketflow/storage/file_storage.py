# ticketflow/storage/file_storage.py
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from ticketflow.storage.base import MarkerStore

logger = logging.getLogger(__name__)

MARKER_FORMAT = "%Y-%m-%d %H:%M:%S"


class FileMarkerStore(MarkerStore):
    """
    One plain-text file per marker, holding a single local timestamp.

    Markers are stored as naive local time with second precision so the files stay
    readable and editable by hand. ``read`` returns an aware datetime.
    """

    def __init__(self, data_dir: Union[str, Path]):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, name: str) -> Path:
        return self.data_dir / f"{name}.txt"

    def read(self, name: str) -> Optional[datetime]:
        path = self.path_for(name)
        if not path.exists():
            return None
        try:
            content = path.read_text(encoding="utf-8").strip()
            return datetime.strptime(content, MARKER_FORMAT).astimezone()
        except (OSError, ValueError) as e:
            logger.warning("Failed to read marker %s: %s", name, e)
            return None

    def write(self, name: str, value: datetime) -> None:
        local = value.astimezone() if value.tzinfo else value
        path = self.path_for(name)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(local.strftime(MARKER_FORMAT), encoding="utf-8")
        tmp_path.replace(path)
        logger.debug("Saved marker %s: %s", name, local.strftime(MARKER_FORMAT))
