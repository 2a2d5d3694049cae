# app/integrations/s3_client.py
from typing import Dict, Optional
from urllib.parse import quote

from core.config import settings
from core.logger import logger


class ObjectStore:
    """Write-once image storage with public, deterministic URLs."""

    def __init__(self, s3, bucket: str = None, public_host: str = None):
        self._s3 = s3
        self.bucket = bucket or settings.STORAGE_BUCKET
        self.public_host = public_host or settings.storage_public_host

    def public_url(self, key: str) -> str:
        return f"https://{self.public_host}/{self.bucket}/{key}"

    def upload(self, key: str, data: bytes, metadata: Optional[Dict[str, str]] = None) -> str:
        """
        Store one PNG and return its public URL.

        S3 user metadata must be ASCII, so values are percent-encoded.
        """
        params = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": data,
            "ContentType": "image/png",
        }
        if metadata:
            params["Metadata"] = {k: quote(v, safe=" ") for k, v in metadata.items()}

        self._s3.put_object(**params)
        logger.debug(f"S3 put ok bucket={self.bucket} key={key} bytes={len(data)}")
        return self.public_url(key)
