"""
Cropper dialog: circular viewport, zoom controls and Confirm/Cancel.

One dialog runs one ``CropSession``.  The image is decoded on an
``ImageLoaderThread``; while it loads the viewport shows a spinner and every
control except Cancel is disabled.  ``open_cropper()`` is the call contract
for data-entry forms: image reference in, PNG data URI (or nothing) out.
"""

import logging
from typing import Callable

from PyQt6.QtWidgets import (
    QDialog, QVBoxLayout, QHBoxLayout, QPushButton, QLabel, QSlider, QWidget,
)
from PyQt6.QtCore import QCoreApplication, Qt, pyqtSignal

from avatar_crop_tool.config import ZOOM_SLIDER_STEP, ZOOM_STEP
from avatar_crop_tool.crop_widget import CircularCropWidget, ImageLoaderThread
from avatar_crop_tool.image_io import load_image
from avatar_crop_tool.models import Phase
from avatar_crop_tool.session import CropSession

logger = logging.getLogger(__name__)

_STYLE_ERROR = "color: #d32f2f;"

# Loaders still decoding after their dialog closed; held until they finish
_detached_loaders: set[ImageLoaderThread] = set()


def _detach_loader(thread: ImageLoaderThread):
    """Let a running loader outlive its dialog without blocking the GUI."""
    logger.debug("Detaching image loader that is still running")
    thread.setParent(QCoreApplication.instance())
    _detached_loaders.add(thread)
    thread.finished.connect(lambda: _detached_loaders.discard(thread))
    thread.finished.connect(thread.deleteLater)
    if thread.isFinished():
        _detached_loaders.discard(thread)
        thread.deleteLater()


def _zoom_to_slider(zoom: float) -> int:
    return int(round(zoom / ZOOM_SLIDER_STEP))


def _slider_to_zoom(value: int) -> float:
    return round(value * ZOOM_SLIDER_STEP, 6)


class ImageCropperDialog(QDialog):
    """Modal dialog that turns one image reference into a round avatar."""

    confirmed = pyqtSignal(str)
    cancelled = pyqtSignal()

    def __init__(self, image_ref: str, parent: QWidget | None = None, loader=load_image, **session_kwargs):
        super().__init__(parent)
        self.setWindowTitle("Adjust Framing")
        self.setModal(True)

        self._result_uri: str | None = None
        self._loader = loader
        self._loader_thread: ImageLoaderThread | None = None
        self._session = CropSession(self._on_session_confirm, self._on_session_cancel, **session_kwargs)

        self._build_ui()
        self._start_load(image_ref)

    # =========================================================================
    # UI construction
    # =========================================================================

    def _build_ui(self):
        layout = QVBoxLayout(self)

        hint = QLabel("Drag to position the photo and use zoom to adjust")
        hint.setStyleSheet("color: #999;")
        layout.addWidget(hint)

        self._crop_widget = CircularCropWidget(self._session, self)
        self._crop_widget.transform_changed.connect(self._sync_controls)
        layout.addWidget(self._crop_widget, alignment=Qt.AlignmentFlag.AlignHCenter)

        # Zoom row: −  [slider]  +   100%
        zoom_row = QHBoxLayout()
        self._zoom_out_btn = QPushButton("−")
        self._zoom_out_btn.setFixedWidth(36)
        self._zoom_out_btn.clicked.connect(lambda: self._step_zoom(-ZOOM_STEP))
        zoom_row.addWidget(self._zoom_out_btn)

        self._zoom_slider = QSlider(Qt.Orientation.Horizontal)
        self._zoom_slider.setRange(
            _zoom_to_slider(self._session.zoom_min), _zoom_to_slider(self._session.zoom_max),
        )
        self._zoom_slider.setSingleStep(1)
        self._zoom_slider.setPageStep(_zoom_to_slider(ZOOM_STEP))
        self._zoom_slider.valueChanged.connect(self._on_slider_changed)
        zoom_row.addWidget(self._zoom_slider, 1)

        self._zoom_in_btn = QPushButton("+")
        self._zoom_in_btn.setFixedWidth(36)
        self._zoom_in_btn.clicked.connect(lambda: self._step_zoom(ZOOM_STEP))
        zoom_row.addWidget(self._zoom_in_btn)

        self._zoom_label = QLabel("100%")
        self._zoom_label.setFixedWidth(48)
        self._zoom_label.setAlignment(Qt.AlignmentFlag.AlignRight | Qt.AlignmentFlag.AlignVCenter)
        zoom_row.addWidget(self._zoom_label)
        layout.addLayout(zoom_row)

        self._error_label = QLabel("")
        self._error_label.setStyleSheet(_STYLE_ERROR)
        self._error_label.setWordWrap(True)
        layout.addWidget(self._error_label)

        # Buttons
        btn_row = QHBoxLayout()
        self._reset_btn = QPushButton("Reset")
        self._reset_btn.clicked.connect(self._on_reset)
        btn_row.addWidget(self._reset_btn)
        btn_row.addStretch()
        self._cancel_btn = QPushButton("Cancel")
        self._cancel_btn.clicked.connect(self.reject)
        btn_row.addWidget(self._cancel_btn)
        self._confirm_btn = QPushButton("Confirm")
        self._confirm_btn.setDefault(True)
        self._confirm_btn.clicked.connect(self._on_confirm_clicked)
        btn_row.addWidget(self._confirm_btn)
        layout.addLayout(btn_row)

    # =========================================================================
    # Loading
    # =========================================================================

    def _start_load(self, image_ref: str):
        logger.debug("Loading cropper image in background")
        self._session.begin_load()
        self._sync_controls()

        self._loader_thread = ImageLoaderThread(image_ref, self, loader=self._loader)
        self._loader_thread.loaded.connect(self._on_image_loaded)
        self._loader_thread.error.connect(self._on_image_load_error)
        self._loader_thread.start()

    def _on_image_loaded(self, image):
        self._stop_loader()
        self._session.image_loaded(image)
        self._sync_controls()

    def _on_image_load_error(self, error: str):
        self._stop_loader()
        self._session.load_failed(error)
        self._sync_controls()

    def _stop_loader(self):
        thread = self._loader_thread
        if thread is None:
            return
        self._loader_thread = None
        try:
            thread.loaded.disconnect()
            thread.error.disconnect()
        except (TypeError, RuntimeError):
            pass  # Already disconnected or destroyed
        if thread.isRunning():
            _detach_loader(thread)

    # =========================================================================
    # Controls
    # =========================================================================

    def session(self) -> CropSession:
        return self._session

    def crop_widget(self) -> CircularCropWidget:
        return self._crop_widget

    def result_uri(self) -> str | None:
        """Data URI handed out on confirm, or None."""
        return self._result_uri

    def _sync_controls(self):
        """Reflect the session phase and zoom in every control."""
        session = self._session
        interactive = session.is_interactive
        for w in (self._zoom_slider, self._zoom_in_btn, self._zoom_out_btn, self._reset_btn):
            w.setEnabled(interactive)
        self._confirm_btn.setEnabled(session.can_confirm)
        self._cancel_btn.setEnabled(not session.is_finished)

        self._zoom_slider.blockSignals(True)
        self._zoom_slider.setValue(_zoom_to_slider(session.zoom))
        self._zoom_slider.blockSignals(False)
        self._zoom_label.setText(f"{round(session.zoom * 100)}%")

        if session.phase is Phase.LOAD_ERROR:
            self._error_label.setText(f"Failed to load image: {session.error}")
        elif session.error:
            self._error_label.setText(f"Could not create the image: {session.error}")
        else:
            self._error_label.setText("")
        self._crop_widget.refresh()

    def _on_slider_changed(self, value: int):
        self._session.set_zoom(_slider_to_zoom(value))
        self._sync_controls()

    def _step_zoom(self, delta: float):
        self._session.zoom_by(delta)
        self._sync_controls()

    def _on_reset(self):
        self._session.reset()
        self._sync_controls()

    def _on_confirm_clicked(self):
        if self._session.confirm() is None:
            # Encoding failed; stay open so the user can retry or cancel
            self._sync_controls()
            return
        self.accept()

    # =========================================================================
    # Session callbacks & close handling
    # =========================================================================

    def _on_session_confirm(self, uri: str):
        self._result_uri = uri
        self.confirmed.emit(uri)

    def _on_session_cancel(self):
        self.cancelled.emit()

    def reject(self):
        # Covers the Cancel button, Escape and the window close button
        self._session.cancel()
        super().reject()

    def done(self, result: int):
        self._stop_loader()
        super().done(result)


def open_cropper(
    image_ref: str,
    on_confirm: Callable[[str], None],
    on_cancel: Callable[[], None],
    parent: QWidget | None = None,
) -> str | None:
    """Run one modal cropper session; returns the PNG data URI or None."""
    dialog = ImageCropperDialog(image_ref, parent)
    dialog.confirmed.connect(on_confirm)
    dialog.cancelled.connect(on_cancel)
    dialog.exec()
    result = dialog.result_uri()
    dialog.deleteLater()
    return result
