import numpy as np
import pytest

from motion_client.camera import Frame


def blank_image(width=320, height=240, value=20):
    return np.full((height, width, 3), value, dtype=np.uint8)


def image_with_square(x, y, size, width=320, height=240):
    image = blank_image(width, height)
    image[y:y + size, x:x + size] = 230
    return image


@pytest.fixture
def frame():
    return Frame(image_with_square(100, 100, 40))
