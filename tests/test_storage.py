import pytest

from app.rhub.storage import LocalStorage, S3Storage, StorageError, storage_from_config


def test_local_storage_roundtrip(tmp_path):
    st = LocalStorage(tmp_path)
    st.put_bytes("resources/1/handout.pdf", b"%PDF", content_type="application/pdf")
    assert st.exists("resources/1/handout.pdf")
    with st.open("resources/1/handout.pdf") as f:
        assert f.read() == b"%PDF"

    st.delete("resources/1/handout.pdf")
    assert not st.exists("resources/1/handout.pdf")
    # Deleting twice is harmless
    st.delete("resources/1/handout.pdf")
    with pytest.raises(StorageError):
        st.open("resources/1/handout.pdf")


def test_local_storage_rejects_escaping_keys(tmp_path):
    st = LocalStorage(tmp_path / "root")
    with pytest.raises(StorageError):
        st.put_bytes("../outside.pdf", b"x")


def test_storage_from_config(tmp_path):
    local = storage_from_config({"STORAGE_BACKEND": "local", "STORAGE_ROOT": str(tmp_path)})
    assert isinstance(local, LocalStorage)
    assert local.root == tmp_path.resolve()

    s3 = storage_from_config({"STORAGE_BACKEND": "S3", "S3_BUCKET": "attachments", "S3_ENDPOINT": "nyc3.example.com"})
    assert isinstance(s3, S3Storage)
    assert s3.bucket == "attachments"
