"""
Proof-of-payment storage.

Receipts are stored content-addressed: the reference is the SHA-256 of the
payload plus an extension, so the same photo stored twice yields the same
reference. The core only ever keeps the reference string.
"""
from __future__ import annotations

import hashlib
import logging
import os
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Optional

from cargopay.db.database import settings
from cargopay.services.errors import DependencyError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "application/pdf": ".pdf",
}
MAX_PROOF_BYTES = 10 * 1024 * 1024

# Disk writes run here so the caller's timeout can be enforced.
_WRITER = ThreadPoolExecutor(max_workers=2, thread_name_prefix="proof-writer")


class ProofStorage(ABC):
    """Accepts an opaque payload and returns a stable reference string."""

    @abstractmethod
    def store(self, payload: bytes, content_type: str, timeout: Optional[float] = None) -> str:
        ...


def _validate(payload: bytes, content_type: str) -> str:
    if not payload:
        raise ValidationError("Proof of payment is empty", ["payment_proof"])
    if len(payload) > MAX_PROOF_BYTES:
        raise ValidationError("Proof of payment exceeds 10 MB", ["payment_proof"])
    extension = ALLOWED_CONTENT_TYPES.get((content_type or "").lower().split(";")[0].strip())
    if not extension:
        raise ValidationError(
            f"Unsupported proof type {content_type!r}; allowed: {', '.join(ALLOWED_CONTENT_TYPES)}",
            ["payment_proof"],
        )
    return extension


class LocalProofStorage(ProofStorage):
    def __init__(self, root):
        self.root = Path(root)

    def _write(self, path: Path, payload: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            return
        tmp_path = path.with_suffix(path.suffix + ".part")
        with open(tmp_path, "wb") as buffer:
            buffer.write(payload)
        os.replace(tmp_path, path)

    def store(self, payload: bytes, content_type: str, timeout: Optional[float] = None) -> str:
        extension = _validate(payload, content_type)
        reference = f"proofs/{hashlib.sha256(payload).hexdigest()}{extension}"
        path = self.root / Path(reference).name

        future = _WRITER.submit(self._write, path, payload)
        try:
            future.result(timeout=timeout)
        except FutureTimeoutError as e:
            logger.error(f"Storing proof {reference} timed out after {timeout}s")
            raise DependencyError("Proof storage timed out") from e
        except OSError as e:
            logger.error(f"Storing proof {reference} failed: {str(e)}")
            raise DependencyError("Proof storage unavailable") from e
        logger.info(f"Stored payment proof {reference} ({len(payload)} bytes)")
        return reference


def get_proof_storage() -> ProofStorage:
    """Dependency for the configured proof storage."""
    return LocalProofStorage(settings.proof_storage_dir)
