import os
import sqlite3
from datetime import datetime

from flask import Blueprint, Flask, current_app, jsonify, request

from image_store import config as store_config
from image_store.database import get_duration, get_upload_stats, init_db, log_upload, set_duration
from image_store.storage import InvalidFileName, InvalidImage, delete_image, list_images, save_image

images = Blueprint('images', __name__)


def _data_dir():
    return current_app.config['DATA_DIR']


def _database():
    return current_app.config['DATABASE_PATH']


def _error(message, status):
    return jsonify({"success": False, "error": message}), status


def _parse_date(raw):
    """Accept a plain date or a full ISO timestamp, keep the date part."""
    if not raw:
        raise ValueError("Missing date parameter")
    return datetime.fromisoformat(raw.strip()).date()


@images.route('/Images', methods=['GET'])
@images.route('/Images/GetImages', methods=['GET'])
def get_images():
    """List the images stored on a given date, most recent first"""
    try:
        date = _parse_date(request.args.get('date'))
    except ValueError as e:
        return _error(f"Invalid date: {e}", 400)

    try:
        names = list_images(_data_dir(), date)
    except OSError as e:
        current_app.logger.error(f"Failed to list images: {e}")
        return _error(str(e), 500)
    return jsonify([{"Name": name} for name in names])


@images.route('/Images/UploadImage', methods=['POST'])
def upload_image():
    """Receive a raw image body, stamp and store it, reply with the upload cadence"""
    data = request.get_data()
    try:
        filename = save_image(data, _data_dir(), quality=current_app.config['JPEG_QUALITY'],
                              max_pixels=current_app.config['MAX_IMAGE_PIXELS'])
    except InvalidImage as e:
        current_app.logger.warning(f"Rejected upload: {e}")
        return _error(str(e), 400)
    except OSError as e:
        current_app.logger.error(f"Failed to store upload: {e}")
        return _error(str(e), 500)

    try:
        log_upload(filename, len(data), _database())
        duration = get_duration(_database())
    except sqlite3.Error as e:
        current_app.logger.error(f"Failed to record upload {filename}: {e}")
        return _error(str(e), 500)

    current_app.logger.info(f"Image stored: {filename} ({len(data)} bytes)")
    return jsonify({"Duration": duration})


@images.route('/Images/DeleteImage', methods=['POST'])
def delete_image_route():
    file_name = request.args.get('fileName') or request.form.get('fileName', '')
    try:
        deleted = delete_image(_data_dir(), file_name)
    except InvalidFileName as e:
        return _error(str(e), 400)
    except OSError as e:
        current_app.logger.error(f"Failed to delete {file_name}: {e}")
        return _error(str(e), 500)

    if deleted:
        current_app.logger.info(f"Image deleted: {file_name}")
    return jsonify("")


@images.route('/Parametrage', methods=['GET'])
def get_parametrage():
    return jsonify({
        "Duration": get_duration(_database()),
        "Uploads": get_upload_stats(_database()),
    })


@images.route('/Parametrage', methods=['POST'])
def post_parametrage():
    """Change the upload cadence handed to clients"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = request.form
    raw = data.get('Duration')
    try:
        duration = int(raw)
    except (TypeError, ValueError):
        duration = 0
    if isinstance(raw, bool) or duration <= 0:
        return jsonify({"Duration": get_duration(_database()),
                        "Result": "Duration must be a positive number of seconds"}), 400

    set_duration(duration, _database())
    current_app.logger.info(f"Upload cadence set to {duration}s")
    return jsonify({"Duration": duration, "Result": "Saved"})


def create_app(overrides=None):
    """Build the image store application. ``overrides`` replaces entries of app.config."""
    app = Flask(__name__)
    app.config.update(
        DATA_DIR=store_config.DATA_DIR,
        DATABASE_PATH=store_config.DATABASE_PATH,
        JPEG_QUALITY=store_config.JPEG_QUALITY,
        MAX_IMAGE_PIXELS=store_config.MAX_IMAGE_PIXELS,
        MAX_CONTENT_LENGTH=store_config.MAX_CONTENT_LENGTH,
    )
    if overrides:
        app.config.update(overrides)

    os.makedirs(app.config['DATA_DIR'], exist_ok=True)
    init_db(app.config['DATABASE_PATH'])
    app.register_blueprint(images)
    app.logger.info("Database initialized successfully")
    return app


def main():
    app = create_app()
    # No authentication or TLS on these endpoints; run behind a trusted network or proxy
    app.run(host='0.0.0.0', port=store_config.PORT, debug=False, threaded=True, use_reloader=False)


if __name__ == '__main__':
    main()
