"""Object storage for generated artifacts (rendered pages, diagrams, PDF exports)."""

from __future__ import annotations

import base64
import logging
import os
from collections import OrderedDict
from typing import Literal, Protocol
from urllib.parse import quote, urlparse, urlunparse

from google.api_core.exceptions import NotFound
from google.auth.credentials import AnonymousCredentials
from google.cloud import storage
from starlette.concurrency import run_in_threadpool

from ezsolvy.ai.pipeline.contracts import ArtifactRef
from ezsolvy.config import Settings

logger = logging.getLogger(__name__)

BucketKind = Literal["assets", "exports"]


class AssetStorage(Protocol):
  """Where pipelines put the artifacts they produce."""

  async def upload(self, data: bytes, *, object_name: str, content_type: str, bucket: BucketKind = "assets") -> ArtifactRef:
    """Store bytes under ``object_name``, replacing any earlier object with that name."""
    ...

  async def download(self, object_name: str, *, bucket: BucketKind = "assets") -> bytes:
    """Return the bytes stored under ``object_name``."""
    ...

  async def ensure_buckets(self) -> None:
    """Create buckets when running against an emulator."""
    ...


class GcsAssetStorage:
  """Thin wrapper over GCS and emulator access for artifact upload."""

  def __init__(self, settings: Settings) -> None:
    self._buckets: dict[BucketKind, str] = {"assets": settings.assets_bucket, "exports": settings.exports_bucket}
    self._storage_host = settings.gcs_storage_host
    if self._storage_host:
      emulator_endpoint = _normalize_emulator_endpoint(self._storage_host)
      os.environ["STORAGE_EMULATOR_HOST"] = emulator_endpoint
      self._public_base = emulator_endpoint
      self._client = storage.Client(project="local-dev", credentials=AnonymousCredentials(), client_options={"api_endpoint": emulator_endpoint})
    else:
      self._public_base = "https://storage.googleapis.com"
      self._client = storage.Client()

  def bucket_name(self, bucket: BucketKind) -> str:
    return self._buckets[bucket]

  async def ensure_buckets(self) -> None:
    # Production buckets are provisioned out of band.
    if not self._storage_host:
      return

    def _create_if_missing() -> None:
      for name in self._buckets.values():
        handle = self._client.bucket(name)
        if not handle.exists(client=self._client):
          self._client.create_bucket(handle)

    await run_in_threadpool(_create_if_missing)

  async def upload(self, data: bytes, *, object_name: str, content_type: str, bucket: BucketKind = "assets") -> ArtifactRef:
    bucket_name = self._buckets[bucket]
    blob = self._client.bucket(bucket_name).blob(object_name)
    blob.cache_control = "public, max-age=3600"
    await run_in_threadpool(blob.upload_from_string, data, content_type)
    url = f"{self._public_base}/{bucket_name}/{quote(object_name)}"
    return ArtifactRef(object_name=object_name, url=url, mime_type=content_type)

  async def download(self, object_name: str, *, bucket: BucketKind = "assets") -> bytes:
    blob = self._client.bucket(self._buckets[bucket]).blob(object_name)
    try:
      return await run_in_threadpool(blob.download_as_bytes)
    except NotFound as exc:
      raise FileNotFoundError(f"{self._buckets[bucket]}/{object_name}") from exc


class InlineAssetStorage:
  """Keeps the most recent artifacts in memory and hands back data URIs; for local runs and tests.

  Once more than ``max_objects`` are stored the oldest upload is evicted. Its data URI stays valid.
  """

  def __init__(self, *, max_objects: int = 256) -> None:
    self.objects: OrderedDict[tuple[BucketKind, str], bytes] = OrderedDict()
    self._max_objects = max_objects

  async def ensure_buckets(self) -> None:
    return None

  async def upload(self, data: bytes, *, object_name: str, content_type: str, bucket: BucketKind = "assets") -> ArtifactRef:
    key = (bucket, object_name)
    self.objects[key] = data
    self.objects.move_to_end(key)
    while len(self.objects) > self._max_objects:
      (evicted_bucket, evicted_name), _ = self.objects.popitem(last=False)
      logger.debug("Evicted inline object %s/%s", evicted_bucket, evicted_name)
    encoded = base64.b64encode(data).decode("ascii")
    return ArtifactRef(object_name=object_name, url=f"data:{content_type};base64,{encoded}", mime_type=content_type)

  async def download(self, object_name: str, *, bucket: BucketKind = "assets") -> bytes:
    try:
      return self.objects[(bucket, object_name)]
    except KeyError as exc:
      raise FileNotFoundError(f"{bucket}/{object_name}") from exc


def build_asset_storage(settings: Settings) -> AssetStorage:
  """Create the configured storage backend."""
  if settings.storage_provider == "gcs":
    return GcsAssetStorage(settings)
  logger.warning("EZSOLVY_STORAGE_PROVIDER=inline keeps at most %d artifacts in memory", settings.inline_storage_max_objects)
  return InlineAssetStorage(max_objects=settings.inline_storage_max_objects)


def _normalize_emulator_endpoint(raw_endpoint: str) -> str:
  """Normalize emulator endpoint so the SDK receives scheme+host+port only."""
  parsed = urlparse(raw_endpoint)
  if not parsed.scheme or not parsed.netloc:
    return raw_endpoint.rstrip("/")
  return urlunparse((parsed.scheme, parsed.netloc, "", "", "", "")).rstrip("/")
