"""Image upload target: Cloudinary when configured, otherwise an inline data URL."""
import base64
import hashlib
import logging
import time

import requests

from errors import UpstreamUnavailable

logger = logging.getLogger(__name__)


def to_data_url(content: bytes, mimetype: str) -> str:
    return f"data:{mimetype};base64,{base64.b64encode(content).decode()}"


class ImageStorage:
    def __init__(self, cloud_name=None, api_key=None, api_secret=None, session=None, timeout=30):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.session = session or requests.Session()
        self.timeout = timeout

    @property
    def remote(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    def _signature(self, timestamp: int) -> str:
        return hashlib.sha1(f"timestamp={timestamp}{self.api_secret}".encode()).hexdigest()

    def save(self, filename: str, content: bytes, mimetype: str) -> str:
        if not self.remote:
            return to_data_url(content, mimetype)
        timestamp = int(time.time())
        try:
            resp = self.session.post(
                f"https://api.cloudinary.com/v1_1/{self.cloud_name}/image/upload",
                data={"api_key": self.api_key, "timestamp": timestamp, "signature": self._signature(timestamp)},
                files={"file": (filename, content, mimetype)},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            return resp.json()["secure_url"]
        except (requests.RequestException, KeyError) as exc:
            logger.error("Upload failed: %s", exc)
            raise UpstreamUnavailable("Upload failed")

    def close(self):
        self.session.close()
