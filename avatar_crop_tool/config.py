"""
Application constants and configuration.

All cropper geometry lives here: the on-screen viewport diameter, the size of
the exported avatar, the zoom range and step sizes, and the background colour
used behind transparent or uncovered areas.

The ``config_dir()`` helper returns the platform-appropriate config
directory and is shared by the persistence module (settings).
"""

import os
import sys
from pathlib import Path

# =============================================================================
# APP IDENTITY & CONFIG DIRECTORY
# =============================================================================
APP_NAME = "avatar-crop-tool"


def config_dir() -> Path:
    """Return the platform-appropriate config directory, creating it if needed."""
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    directory = base / APP_NAME
    directory.mkdir(parents=True, exist_ok=True)
    return directory


# =============================================================================
# VIEWPORT & OUTPUT GEOMETRY
# =============================================================================
# Diameter of the circular viewport, in display units (screen pixels)
VIEWPORT_DIAMETER = 220

# Side length of the exported square avatar (pixels)
OUTPUT_SIZE = 400

# Fill behind transparent source pixels and uncovered margin inside the circle
BACKGROUND_COLOR = (255, 255, 255)

# Supersampling factor for the anti-aliased circle edge
CLIP_SUPERSAMPLE = 4

# PNG compression level (0-9, 9 = maximum compression)
PNG_COMPRESS_LEVEL = 9

# =============================================================================
# ZOOM
# =============================================================================
ZOOM_MIN = 0.2
ZOOM_MAX = 4.0
ZOOM_DEFAULT = 1.0

# Increment for the −/+ buttons, keyboard shortcuts and one wheel notch
ZOOM_STEP = 0.1

# Slider granularity
ZOOM_SLIDER_STEP = 0.05

# =============================================================================
# INPUT
# =============================================================================
# Nudge amounts (display units) for arrow keys, Shift for the large step
NUDGE_SMALL = 1
NUDGE_LARGE = 10

# Supported image extensions for the file picker
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".gif", ".tiff", ".tif", ".webp", ".psd"}
