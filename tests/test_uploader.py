import pytest
import requests

from motion_client.uploader import (InvalidDestination, ServerConfig, TransferFailed, UploadClient,
                                    upload_url, validate_destination)


def make_response(status_code, content, url="http://collector.local/Images/UploadImage"):
    response = requests.Response()
    response.status_code = status_code
    response._content = content
    response.url = url
    response.encoding = 'utf-8'
    return response


@pytest.fixture
def posts(monkeypatch):
    """Replace requests.post; tests set ``posts.response`` or ``posts.error``."""
    class Recorder:
        calls = []
        response = make_response(200, b'{"Duration": 30}')
        error = None

        def __call__(self, url, data=None, headers=None, timeout=None):
            self.calls.append({"url": url, "data": data, "headers": headers, "timeout": timeout})
            if self.error is not None:
                raise self.error
            return self.response

    recorder = Recorder()
    recorder.calls = []
    monkeypatch.setattr(requests, "post", recorder)
    return recorder


@pytest.mark.parametrize("address", ["not a url", "", "ftp://collector.local", "http://", "/Images"])
def test_invalid_destinations_are_rejected(address):
    with pytest.raises(InvalidDestination):
        validate_destination(address)


def test_upload_url_replaces_path():
    assert upload_url("http://collector.local:5001") == "http://collector.local:5001/Images/UploadImage"
    assert upload_url("https://collector.local/old/path") == "https://collector.local/Images/UploadImage"


def test_upload_posts_jpeg_and_returns_server_config(posts, frame):
    config = UploadClient(timeout=3).upload(frame, "http://collector.local")

    assert config == ServerConfig(duration=30)
    assert len(posts.calls) == 1
    call = posts.calls[0]
    assert call["url"] == "http://collector.local/Images/UploadImage"
    assert call["headers"]["Content-Type"] == "image/jpeg"
    assert call["data"][:2] == b"\xff\xd8"
    assert call["timeout"] == 3


def test_invalid_destination_makes_no_network_call(posts, frame):
    with pytest.raises(InvalidDestination):
        UploadClient().upload(frame, "not a url")
    assert posts.calls == []


def test_connection_error_is_transfer_failed(posts, frame):
    posts.error = requests.ConnectionError("connection refused")
    with pytest.raises(TransferFailed, match="connection refused"):
        UploadClient().upload(frame, "http://collector.local")


def test_server_error_is_transfer_failed(posts, frame):
    posts.response = make_response(500, b'{"success": false}')
    with pytest.raises(TransferFailed):
        UploadClient().upload(frame, "http://collector.local")


@pytest.mark.parametrize("content", [b"<html>oops</html>", b'{"success": true}', b'{"Duration": 0}', b'[30]'])
def test_unusable_reply_is_transfer_failed(posts, frame, content):
    posts.response = make_response(200, content)
    with pytest.raises(TransferFailed):
        UploadClient().upload(frame, "http://collector.local")
