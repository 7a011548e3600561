"""Member avatar uploads to a Supabase Storage bucket over its REST API."""
import logging
import os
import secrets
import string
import time

import requests

logger = logging.getLogger(__name__)

_ALPHABET = string.ascii_lowercase + string.digits


class StorageError(Exception):
    pass


def _object_path(filename: str) -> str:
    ext = (os.path.splitext(filename or '')[1].lstrip('.') or 'jpg').lower()
    suffix = ''.join(secrets.choice(_ALPHABET) for _ in range(6))
    return f"members/{int(time.time() * 1000)}-{suffix}.{ext}"


class AvatarStorage:
    def __init__(self, url: str | None, service_key: str | None, bucket: str = 'avatars', timeout: int = 20):
        self.url = (url or '').rstrip('/')
        self.service_key = service_key
        self.bucket = bucket
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> 'AvatarStorage':
        return cls(
            config.get('SUPABASE_URL'),
            config.get('SUPABASE_SERVICE_ROLE_KEY'),
            bucket=config.get('SUPABASE_AVATAR_BUCKET') or 'avatars',
            timeout=config.get('STORAGE_TIMEOUT') or 20,
        )

    @property
    def configured(self) -> bool:
        return bool(self.url and self.service_key)

    def public_url(self, path: str) -> str:
        return f"{self.url}/storage/v1/object/public/{self.bucket}/{path}"

    def upload(self, data: bytes, filename: str, content_type: str) -> str:
        """Store ``data`` under a fresh object path and return its public URL."""
        if not self.configured:
            raise StorageError('Storage configuration missing (SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY)')
        path = _object_path(filename)
        headers = {
            'Authorization': f'Bearer {self.service_key}',
            'apikey': self.service_key,
            'Content-Type': content_type,
            'x-upsert': 'false',
        }
        endpoint = f"{self.url}/storage/v1/object/{self.bucket}/{path}"
        try:
            r = requests.post(endpoint, headers=headers, data=data, timeout=self.timeout)
        except requests.RequestException as e:
            raise StorageError(f"request error: {e}") from e
        if not (200 <= r.status_code < 300):
            raise StorageError(f"{r.status_code}: {r.text}")
        logger.info("avatar uploaded bucket=%s path=%s size=%d", self.bucket, path, len(data))
        return self.public_url(path)
