import numpy as np
import pytest

from hdrstack.config import ViewerSettings
from hdrstack.model.image import HDRImage, ImageDescriptor
from hdrstack.session import Session


def make_image(name, array, channel_names=None):
    return HDRImage.from_descriptor(ImageDescriptor.from_array(name, np.asarray(array, dtype=np.float32), channel_names))


@pytest.fixture
def gradient_rgb():
    h, w = 4, 6
    ys, xs = np.mgrid[0:h, 0:w].astype(np.float32)
    return np.stack([xs / w, ys / h, (xs + ys) / (w + h)], axis=-1)


@pytest.fixture
def settings():
    return ViewerSettings(default_gamma=1.0, dither=False, render_workers=1)


@pytest.fixture
def session(settings):
    return Session(settings)


@pytest.fixture
def three_image_session(session):
    ids = [
        session.add_image(make_image(name, np.full((2, 3), value)))
        for name, value in (('a.tif', 0.25), ('b.tif', 0.5), ('c.tif', 1.0))
    ]
    return session, ids
