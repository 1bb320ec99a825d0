"""
Snapshot writing for portfolio-sync.
"""
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Union

from portfolio_sync.core.record import Record, Snapshot

# Configure logging
logger = logging.getLogger(__name__)


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with milliseconds, e.g. ``2024-05-01T09:30:00.000Z``."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


class SnapshotWriter:
    """
    Writes the JSON snapshot read by the site.
    """
    def __init__(self, output_dir: Union[str, Path] = 'data'):
        """
        Initialize the SnapshotWriter.

        Args:
            output_dir: Directory the snapshot files live in
        """
        self.output_dir = Path(output_dir)

    def build(self, list_key: str, records: Iterable[Record], now: Optional[datetime] = None) -> Snapshot:
        return Snapshot(list_key=list_key, records=list(records), last_updated=utc_timestamp(now))

    def write(self, filename: str, snapshot: Snapshot) -> Path:
        """
        Replace ``<output_dir>/<filename>`` with the snapshot.

        The JSON goes to a temporary file in the same directory first and
        is then renamed over the target, so readers never see half a file.

        Returns:
            Path of the written file
        """
        os.makedirs(self.output_dir, exist_ok=True)
        output_path = self.output_dir / filename

        payload = json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False)
        fd, tmp_path = tempfile.mkstemp(dir=self.output_dir, prefix=f".{filename}.", suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(payload)
                f.write('\n')
            os.chmod(tmp_path, 0o644)
            os.replace(tmp_path, output_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.info(f"Saved {snapshot.count} record(s) to {output_path}")
        logger.info(f"Last updated: {snapshot.last_updated}")
        return output_path
