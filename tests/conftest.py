import os

# Must be set before the QApplication is created by pytest-qt
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PIL import Image

RED = (255, 0, 0)
BLUE = (0, 0, 255)


@pytest.fixture(autouse=True)
def isolated_config_dir(tmp_path, monkeypatch):
    """Keep settings writes out of the real user config directory."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("APPDATA", str(tmp_path / "config"))


@pytest.fixture
def split_image():
    """Square image, left half red and right half blue."""
    def make(size: int = 800) -> Image.Image:
        img = Image.new("RGB", (size, size), RED)
        img.paste(BLUE, (size // 2, 0, size, size))
        return img
    return make


@pytest.fixture
def solid_image():
    def make(w: int, h: int, color=RED, mode: str = "RGB") -> Image.Image:
        return Image.new(mode, (w, h), color)
    return make
