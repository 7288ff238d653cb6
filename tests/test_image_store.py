import os
import sqlite3
from datetime import date, datetime, timezone
from io import BytesIO

import pytest
from PIL import Image

import image_store.app
from image_store.app import create_app
from image_store.storage import (InvalidFileName, InvalidImage, delete_image, image_file_name,
                                 list_images, overlay_text, save_image)


def jpeg_bytes(width=320, height=240, color=(10, 10, 10)):
    buffer = BytesIO()
    Image.new('RGB', (width, height), color=color).save(buffer, 'JPEG')
    return buffer.getvalue()


@pytest.fixture
def data_dir(tmp_path):
    return str(tmp_path / "Datas")


@pytest.fixture
def client(tmp_path, data_dir):
    app = create_app({
        'TESTING': True,
        'DATA_DIR': data_dir,
        'DATABASE_PATH': str(tmp_path / "store.db"),
    })
    return app.test_client()


def touch(folder, *names):
    os.makedirs(folder, exist_ok=True)
    for name in names:
        open(os.path.join(folder, name), 'wb').close()


def test_file_name_format():
    when = datetime(2024, 1, 5, 13, 7, 22, tzinfo=timezone.utc)
    assert image_file_name(when) == "2024-01-05 13-07-22.jpg"
    assert overlay_text(when) == "Friday, January 05, 2024 13:07:22 (UTC)"


def test_save_image_stamps_and_names_from_receive_time(data_dir):
    when = datetime(2024, 1, 5, 13, 7, 22, tzinfo=timezone.utc)
    name = save_image(jpeg_bytes(), data_dir, now=when)
    assert name == "2024-01-05 13-07-22.jpg"

    stored = Image.open(os.path.join(data_dir, name)).convert('RGB')
    assert stored.size == (320, 240)
    # the overlay text is drawn in white near the top left corner
    corner = stored.crop((0, 0, 200, 30))
    assert max(pixel[0] for pixel in corner.getdata()) > 200


@pytest.mark.parametrize("payload", [b"", b"definitely not an image"])
def test_save_image_rejects_undecodable_payload(data_dir, payload):
    with pytest.raises(InvalidImage):
        save_image(payload, data_dir)


def test_list_images_filters_by_date_most_recent_first(data_dir):
    touch(data_dir, "2024-01-05 13-07-22.jpg", "2024-01-05 18-00-00.jpg",
          "2024-01-05 08-30-00.jpg", "2024-01-06 00-00-01.jpg", "notes.txt")
    assert list_images(data_dir, date(2024, 1, 5)) == [
        "2024-01-05 18-00-00.jpg",
        "2024-01-05 13-07-22.jpg",
        "2024-01-05 08-30-00.jpg",
    ]
    assert list_images(data_dir, date(2023, 12, 31)) == []


def test_delete_image_is_idempotent(data_dir):
    touch(data_dir, "2024-01-05 13-07-22.jpg")
    assert delete_image(data_dir, "2024-01-05 13-07-22.jpg") is True
    assert delete_image(data_dir, "2024-01-05 13-07-22.jpg") is False
    assert not os.path.exists(os.path.join(data_dir, "2024-01-05 13-07-22.jpg"))


@pytest.mark.parametrize("name", ["../store.db", "/etc/passwd", "", "sub/../../x.jpg"])
def test_delete_image_rejects_names_outside_folder(data_dir, name):
    with pytest.raises(InvalidFileName):
        delete_image(data_dir, name)


def test_upload_returns_configured_duration(client, data_dir):
    response = client.post('/Images/UploadImage', data=jpeg_bytes(),
                           headers={'Content-Type': 'image/jpeg'})
    assert response.status_code == 200
    assert response.get_json() == {"Duration": 15}

    stored = os.listdir(data_dir)
    assert len(stored) == 1
    today = datetime.now(timezone.utc).strftime('%Y-%m-%d')
    listed = client.get(f'/Images?date={today}').get_json()
    # a second boundary may fall between saving and listing, compare by name
    assert stored[0] in [entry["Name"] for entry in listed]


def test_upload_follows_server_side_duration(client):
    assert client.post('/Parametrage', json={"Duration": 45}).status_code == 200
    response = client.post('/Images/UploadImage', data=jpeg_bytes())
    assert response.get_json() == {"Duration": 45}

    settings = client.get('/Parametrage').get_json()
    assert settings["Duration"] == 45
    assert settings["Uploads"]["total_uploads"] == 1


def test_upload_rejects_garbage(client, data_dir):
    response = client.post('/Images/UploadImage', data=b"garbage")
    assert response.status_code == 400
    assert response.get_json()["success"] is False
    assert os.listdir(data_dir) == []


def test_list_route_and_alias(client, data_dir):
    touch(data_dir, "2024-01-05 13-07-22.jpg", "2024-01-05 23-59-59.jpg", "2024-01-04 10-00-00.jpg")
    expected = [{"Name": "2024-01-05 23-59-59.jpg"}, {"Name": "2024-01-05 13-07-22.jpg"}]
    assert client.get('/Images?date=2024-01-05').get_json() == expected
    assert client.get('/Images/GetImages?date=2024-01-05T00:00:00').get_json() == expected


@pytest.mark.parametrize("query", ["", "?date=", "?date=yesterday"])
def test_list_route_requires_a_date(client, query):
    assert client.get(f'/Images{query}').status_code == 400


def test_delete_route(client, data_dir):
    touch(data_dir, "2024-01-05 13-07-22.jpg")
    response = client.post('/Images/DeleteImage', query_string={'fileName': '2024-01-05 13-07-22.jpg'})
    assert response.status_code == 200
    assert response.get_json() == ""
    assert os.listdir(data_dir) == []

    again = client.post('/Images/DeleteImage', query_string={'fileName': '2024-01-05 13-07-22.jpg'})
    assert again.status_code == 200


def test_delete_route_rejects_traversal(client):
    assert client.post('/Images/DeleteImage?fileName=../store.db').status_code == 400


@pytest.mark.parametrize("payload", [{"Duration": 0}, {"Duration": "soon"}, {}])
def test_parametrage_rejects_invalid_duration(client, payload):
    response = client.post('/Parametrage', json=payload)
    assert response.status_code == 400
    assert response.get_json()["Duration"] == 15


def test_parametrage_accepts_form_field(client):
    response = client.post('/Parametrage', data={"Duration": "20"})
    assert response.get_json() == {"Duration": 20, "Result": "Saved"}


def png_bytes(width, height, mode='1'):
    buffer = BytesIO()
    Image.new(mode, (width, height)).save(buffer, 'PNG')
    return buffer.getvalue()


def test_save_image_rejects_images_above_pixel_cap(data_dir):
    with pytest.raises(InvalidImage, match="too large"):
        save_image(png_bytes(200, 100), data_dir, max_pixels=100 * 100)
    assert not os.path.exists(data_dir) or os.listdir(data_dir) == []


def test_upload_rejects_decompression_bomb(client, data_dir):
    # small payload declaring 400 million pixels
    response = client.post('/Images/UploadImage', data=png_bytes(20000, 20000))
    assert response.status_code == 400
    assert response.get_json()["success"] is False
    assert os.listdir(data_dir) == []


def test_upload_respects_configured_pixel_cap(tmp_path, data_dir):
    app = create_app({
        'TESTING': True,
        'DATA_DIR': data_dir,
        'DATABASE_PATH': str(tmp_path / "store.db"),
        'MAX_IMAGE_PIXELS': 100 * 100,
    })
    response = app.test_client().post('/Images/UploadImage', data=jpeg_bytes(320, 240))
    assert response.status_code == 400
    assert "too large" in response.get_json()["error"]


def test_upload_reports_database_failure_as_json(client, monkeypatch):
    def broken_log_upload(*args, **kwargs):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(image_store.app, "log_upload", broken_log_upload)
    response = client.post('/Images/UploadImage', data=jpeg_bytes())
    assert response.status_code == 500
    assert response.get_json() == {"success": False, "error": "database is locked"}
