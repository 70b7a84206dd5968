import logging
import uuid
from pathlib import Path
from typing import Optional

import boto3

logger = logging.getLogger(__name__)


def mastered_name(original: str) -> str:
    """``song.mp3`` -> ``song_mastered.wav``."""

    stem = Path(original or "audio").stem or "audio"
    return f"{stem}_mastered.wav"


class ResultStore:
    """Stores rendered WAV files.

    Files are always written to ``output_dir`` first. When both a bucket
    and a region are configured the file is uploaded to S3, the local
    copy is removed and the S3 URL is returned instead of the path.
    """

    def __init__(
        self,
        output_dir: str | Path,
        bucket: Optional[str] = None,
        region: Optional[str] = None,
        prefix: str = "mastered/",
    ) -> None:
        self.output_dir = Path(output_dir)
        self.bucket = bucket
        self.region = region
        self.prefix = prefix.rstrip("/")
        self._client = None

    @property
    def uses_s3(self) -> bool:
        return bool(self.bucket and self.region)

    def _s3_client(self):
        if self._client is None:
            session = boto3.session.Session()
            self._client = session.client("s3", region_name=self.region)
        return self._client

    def save(self, name: str, data: bytes) -> str:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        unique_id = uuid.uuid4().hex
        path = self.output_dir / f"{unique_id}_{Path(name).name}"
        path.write_bytes(data)

        if not self.uses_s3:
            return str(path)

        object_key = f"{self.prefix}/{path.name}"
        self._s3_client().upload_file(str(path), self.bucket, object_key, ExtraArgs={"ContentType": "audio/wav"})
        try:
            path.unlink()
        except OSError:
            logger.warning("could not remove %s after upload", path)

        # virtual-hosted style URL
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{object_key}"
