import hashlib
import time

import pytest

from cargopay.services.errors import DependencyError, ValidationError
from cargopay.services.proof_storage import MAX_PROOF_BYTES, LocalProofStorage, ProofStorage

JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"receipt" * 32


class SlowProofStorage(LocalProofStorage):
    def _write(self, path, payload):
        time.sleep(0.5)
        super()._write(path, payload)


def test_reference_is_content_addressed(proof_storage):
    reference = proof_storage.store(JPEG_BYTES, "image/jpeg")
    assert reference == f"proofs/{hashlib.sha256(JPEG_BYTES).hexdigest()}.jpg"
    assert (proof_storage.root / reference.split("/")[-1]).read_bytes() == JPEG_BYTES


def test_same_payload_stored_twice_gives_same_reference(proof_storage):
    assert proof_storage.store(JPEG_BYTES, "image/jpeg") == proof_storage.store(JPEG_BYTES, "image/jpeg")
    assert len(list(proof_storage.root.iterdir())) == 1


def test_content_type_parameters_are_ignored(proof_storage):
    assert proof_storage.store(b"%PDF-1.7 ...", "application/pdf; charset=binary").endswith(".pdf")


@pytest.mark.parametrize(
    "payload,content_type",
    [
        (b"", "image/png"),
        (b"GIF89a", "image/gif"),
        (b"hello", ""),
        (b"\x00" * (MAX_PROOF_BYTES + 1), "image/png"),
    ],
)
def test_rejected_uploads(proof_storage, payload, content_type):
    with pytest.raises(ValidationError) as excinfo:
        proof_storage.store(payload, content_type)
    assert excinfo.value.missing == ["payment_proof"]


def test_slow_storage_times_out(tmp_path):
    storage = SlowProofStorage(tmp_path)
    with pytest.raises(DependencyError):
        storage.store(JPEG_BYTES, "image/jpeg", timeout=0.05)


def test_unwritable_storage_is_a_dependency_error(tmp_path):
    blocker = tmp_path / "not-a-directory"
    blocker.write_bytes(b"")
    storage = LocalProofStorage(blocker)
    with pytest.raises(DependencyError):
        storage.store(JPEG_BYTES, "image/jpeg", timeout=5)


def test_storage_interface_cannot_be_used_directly():
    with pytest.raises(TypeError):
        ProofStorage()
