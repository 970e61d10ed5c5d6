"""
Application entry point and dark-theme stylesheet.

Opens a photo (from the command line or a file picker), lets the user frame
it in the circular cropper and writes the confirmed avatar as a PNG.

Usage:
    python -m avatar_crop_tool [PHOTO] [-o OUTPUT] [-v]
    avatar-crop-tool [PHOTO] [-o OUTPUT] [-v]      (after pip install)
"""

import argparse
import logging
import sys
from pathlib import Path

from PyQt6.QtWidgets import QApplication, QFileDialog

from avatar_crop_tool.config import IMAGE_EXTENSIONS
from avatar_crop_tool.cropper_dialog import open_cropper
from avatar_crop_tool.image_io import file_to_data_uri, parse_data_uri, unique_path
from avatar_crop_tool.settings import last_folder, load_settings, remember_folder, save_settings

logger = logging.getLogger(__name__)

DARK_STYLESHEET = """
    QDialog { background: #2b2b2b; }
    QWidget { background: #2b2b2b; color: #ddd; font-size: 10pt; }
    QPushButton { background: #3a3a3a; border: 1px solid #555; border-radius: 4px; padding: 6px 12px; }
    QPushButton:hover { background: #4a4a4a; }
    QPushButton:pressed { background: #2a2a2a; }
    QPushButton:default { background: #2e7d5b; border-color: #3f9d75; }
    QPushButton:disabled { color: #666; }
    QSlider::groove:horizontal { height: 6px; background: #444; border-radius: 3px; }
    QSlider::handle:horizontal { background: #ddd; width: 14px; margin: -5px 0; border-radius: 7px; }
"""


def default_output_path(photo: Path) -> Path:
    return unique_path(photo.with_name(f"{photo.stem}-avatar.png"))


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="avatar-crop-tool",
        description="Frame a photo inside a circle and export a round PNG avatar.",
    )
    parser.add_argument("photo", nargs="?", type=Path, help="photo to crop (a file picker opens if omitted)")
    parser.add_argument("-o", "--output", type=Path, help="where to write the PNG (default: <photo>-avatar.png)")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser.parse_args(argv)


def _pick_photo(settings: dict) -> Path | None:
    start = last_folder(settings) or Path.home()
    patterns = " ".join(f"*{ext}" for ext in sorted(IMAGE_EXTENSIONS))
    filename, _ = QFileDialog.getOpenFileName(None, "Choose a photo", str(start), f"Images ({patterns})")
    return Path(filename) if filename else None


def write_avatar(uri: str, output: Path) -> Path:
    """Decode a PNG data URI and write it to *output*."""
    _mime, data = parse_data_uri(uri)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(data)
    logger.info("Wrote avatar to %s", output)
    return output


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = QApplication.instance() or QApplication(sys.argv[:1])
    app.setStyleSheet(DARK_STYLESHEET)

    settings = load_settings()
    photo = args.photo or _pick_photo(settings)
    if photo is None:
        logger.info("No photo chosen")
        return 1
    if not photo.is_file():
        logger.error("Photo not found: %s", photo)
        return 2

    remember_folder(settings, photo.resolve().parent)
    save_settings(settings)

    # The form hands the cropper a data URI, exactly as a file reader would
    image_ref = file_to_data_uri(photo)
    output = args.output or default_output_path(photo)

    uri = open_cropper(
        image_ref,
        on_confirm=lambda _uri: logger.debug("Crop confirmed"),
        on_cancel=lambda: logger.info("Crop cancelled, nothing written"),
    )
    if uri is None:
        return 1
    write_avatar(uri, output)
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        pass
