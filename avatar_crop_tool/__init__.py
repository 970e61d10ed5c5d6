"""Round avatar cropper: pan and zoom a photo inside a circle, export a PNG."""

__version__ = "1.0.0"
