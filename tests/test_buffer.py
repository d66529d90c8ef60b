"""
Tests for the two-phase response buffer.
"""
import pytest

from sealed_session.buffer import ResponseBuffer


@pytest.fixture
def buffer():
    return ResponseBuffer()


class TestAccumulate:

    def test_new_buffer_is_empty(self, buffer):
        assert buffer.empty is True
        assert buffer.status is None
        assert buffer.body == b""
        assert buffer.committed is False

    def test_write_bytes_and_text(self, buffer):
        assert buffer.write(b"abc") == 3
        assert buffer.write("dé") == 3
        assert buffer.body == "abcdé".encode("utf-8")
        assert buffer.empty is False

    def test_status_is_captured(self, buffer):
        buffer.write_status(201)
        assert buffer.status == 201
        assert buffer.empty is False

    def test_headers(self, buffer):
        buffer.headers["X-Custom"] = "1"
        assert buffer.empty is False


class TestCommit:

    def test_commit_defaults(self, buffer):
        response = buffer.commit()
        assert response.status == 200
        assert response.body == b""
        assert buffer.committed is True

    def test_commit_status_and_body(self, buffer):
        buffer.write_status(404, "Nope")
        buffer.write("missing")
        response = buffer.commit()
        assert response.status == 404
        assert response.reason == "Nope"
        assert response.body == b"missing"
        assert response.content_type == "text/plain"
        assert response.charset == "utf-8"

    def test_binary_content_type(self, buffer):
        buffer.write(b"\x00")
        assert buffer.commit().content_type == "application/octet-stream"

    def test_explicit_content_type(self, buffer):
        buffer.headers["Content-Type"] = "application/json"
        buffer.write('{"a": 1}')
        assert buffer.commit().content_type == "application/json"

    def test_headers_copied(self, buffer):
        buffer.headers["X-Trace"] = "abc"
        assert buffer.commit().headers["X-Trace"] == "abc"

    def test_no_writes_after_commit(self, buffer):
        buffer.commit()
        with pytest.raises(RuntimeError):
            buffer.write(b"late")
        with pytest.raises(RuntimeError):
            buffer.write_status(500)
        with pytest.raises(RuntimeError):
            buffer.commit()
