"""
Interactive circular viewport widget and Qt image helpers.

This module contains everything that touches both Qt **and** image display:
``pil_to_qpixmap``, the background ``ImageLoaderThread``, and the
``CircularCropWidget`` that paints a ``CropSession`` and feeds it pointer
input.  Mouse and touch input are both translated into ``PointerEvent``s,
so the session only ever sees one kind of drag.
"""

from PIL import Image
from PyQt6.QtWidgets import QWidget, QSizePolicy
from PyQt6.QtCore import Qt, QEvent, QPointF, QRectF, QThread, QTimer, pyqtSignal
from PyQt6.QtGui import (
    QColor, QImage, QKeyEvent, QMouseEvent, QPainter, QPainterPath, QPaintEvent, QPen,
    QPixmap, QTouchEvent, QWheelEvent,
)

from avatar_crop_tool.config import NUDGE_LARGE, NUDGE_SMALL, ZOOM_STEP
from avatar_crop_tool.image_io import load_image
from avatar_crop_tool.models import Phase, PointerEvent, PointerPhase
from avatar_crop_tool.session import CropSession

# Space around the viewport circle inside the widget
_MARGIN = 24
_SPINNER_INTERVAL_MS = 40


# =============================================================================
# Qt ↔ PIL helpers
# =============================================================================

def pil_to_qpixmap(pil_img: Image.Image) -> QPixmap:
    """Convert a PIL Image to QPixmap."""
    img_rgba = pil_img.convert("RGBA")
    data = img_rgba.tobytes("raw", "RGBA")
    qimg = QImage(data, img_rgba.width, img_rgba.height, img_rgba.width * 4, QImage.Format.Format_RGBA8888)
    return QPixmap.fromImage(qimg)


# =============================================================================
# Background image loader
# =============================================================================

class ImageLoaderThread(QThread):
    """Background thread that resolves and decodes an image reference."""
    loaded = pyqtSignal(object)
    error = pyqtSignal(str)

    def __init__(self, image_ref: str, parent=None, loader=load_image):
        super().__init__(parent)
        self._image_ref = image_ref
        self._loader = loader

    def run(self):
        try:
            image = self._loader(self._image_ref)
            self.loaded.emit(image)
        except Exception as e:
            self.error.emit(str(e))


# =============================================================================
# Circular Crop Widget: pan/zoom an image inside a round viewport
# =============================================================================

class CircularCropWidget(QWidget):
    """Widget that shows a session's image through a fixed circular viewport."""

    transform_changed = pyqtSignal()

    def __init__(self, session: CropSession | None = None, parent=None):
        super().__init__(parent)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setSizePolicy(QSizePolicy.Policy.Fixed, QSizePolicy.Policy.Fixed)
        self.setAttribute(Qt.WidgetAttribute.WA_AcceptTouchEvents, True)
        self.setMouseTracking(False)

        self._session: CropSession | None = None
        self._pixmap: QPixmap | None = None
        self._pixmap_source: Image.Image | None = None
        self._spinner_angle = 0
        self._spinner = QTimer(self)
        self._spinner.setInterval(_SPINNER_INTERVAL_MS)
        self._spinner.timeout.connect(self._advance_spinner)

        if session is not None:
            self.set_session(session)

    # --- Session binding ---

    def set_session(self, session: CropSession):
        self._session = session
        side = int(session.viewport_diameter + 2 * _MARGIN)
        self.setFixedSize(side, side)
        self.refresh()

    def session(self) -> CropSession | None:
        return self._session

    def refresh(self):
        """Sync the cached pixmap and spinner with the session phase."""
        session = self._session
        if session is not None and session.image is not None:
            if self._pixmap_source is not session.image:
                self._pixmap = pil_to_qpixmap(session.image)
                self._pixmap_source = session.image
        else:
            self._pixmap = None
            self._pixmap_source = None

        loading = session is not None and session.phase is Phase.LOADING
        if loading and not self._spinner.isActive():
            self._spinner.start()
        elif not loading and self._spinner.isActive():
            self._spinner.stop()

        if session is not None and session.phase is Phase.DRAGGING:
            self.setCursor(Qt.CursorShape.ClosedHandCursor)
        elif session is not None and session.is_interactive:
            self.setCursor(Qt.CursorShape.OpenHandCursor)
        else:
            self.unsetCursor()
        self.update()

    def is_spinning(self) -> bool:
        return self._spinner.isActive()

    def _advance_spinner(self):
        self._spinner_angle = (self._spinner_angle + 12) % 360
        self.update()

    # --- Geometry ---

    def viewport_rect(self) -> QRectF:
        d = self._session.viewport_diameter if self._session else 0
        return QRectF((self.width() - d) / 2, (self.height() - d) / 2, d, d)

    def viewport_contains(self, pos: QPointF) -> bool:
        r = self.viewport_rect()
        radius = r.width() / 2
        dx = pos.x() - r.center().x()
        dy = pos.y() - r.center().y()
        return dx * dx + dy * dy <= radius * radius

    def image_display_rect(self) -> QRectF:
        """Where the image is drawn, in widget coordinates."""
        session = self._session
        if session is None or session.image is None:
            return QRectF()
        nat_w, nat_h = session.natural_size
        scale = session.display_scale
        t = session.transform
        center = self.viewport_rect().center()
        w = nat_w * scale
        h = nat_h * scale
        return QRectF(center.x() + t.offset_x - w / 2, center.y() + t.offset_y - h / 2, w, h)

    # --- Painting ---

    def paintEvent(self, event: QPaintEvent):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)

        vp = self.viewport_rect()
        clip = QPainterPath()
        clip.addEllipse(vp)

        painter.save()
        painter.setClipPath(clip)
        painter.fillRect(vp, QColor(45, 45, 45))
        if self._pixmap is not None:
            painter.drawPixmap(self.image_display_rect(), self._pixmap, QRectF(self._pixmap.rect()))
        painter.restore()

        # Ring guide
        painter.setPen(QPen(QColor(255, 255, 255, 80), 4))
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawEllipse(vp.adjusted(2, 2, -2, -2))

        session = self._session
        if session is not None and session.phase is Phase.LOADING:
            self._paint_spinner(painter, vp)
        elif session is not None and session.phase is Phase.LOAD_ERROR:
            painter.setPen(QColor(230, 120, 120))
            painter.drawText(
                vp.adjusted(24, 24, -24, -24),
                Qt.AlignmentFlag.AlignCenter.value | Qt.TextFlag.TextWordWrap.value,
                f"Could not load image\n{session.error or ''}",
            )
        painter.end()

    def _paint_spinner(self, painter: QPainter, vp: QRectF):
        c = vp.center()
        ring = QRectF(c.x() - 16, c.y() - 16, 32, 32)
        painter.setPen(QPen(QColor(255, 255, 255, 70), 3))
        painter.drawEllipse(ring)
        painter.setPen(QPen(QColor(255, 255, 255), 3))
        # Qt angles are in 1/16th of a degree
        painter.drawArc(ring, -self._spinner_angle * 16, 90 * 16)

    # --- Pointer input ---

    def _feed(self, pos: QPointF, phase: PointerPhase) -> bool:
        if self._session is None:
            return False
        changed = self._session.handle_pointer(PointerEvent(pos.x(), pos.y(), phase))
        if changed:
            self.transform_changed.emit()
        self.refresh()
        return changed

    def mousePressEvent(self, event: QMouseEvent):
        if event.button() != Qt.MouseButton.LeftButton:
            return
        pos = event.position()
        if self.viewport_contains(pos):
            self._feed(pos, PointerPhase.DOWN)

    def mouseMoveEvent(self, event: QMouseEvent):
        self._feed(event.position(), PointerPhase.MOVE)

    def mouseReleaseEvent(self, event: QMouseEvent):
        if event.button() == Qt.MouseButton.LeftButton:
            self._feed(event.position(), PointerPhase.UP)

    def leaveEvent(self, event):
        self._feed(QPointF(), PointerPhase.UP)
        super().leaveEvent(event)

    def event(self, event: QEvent) -> bool:
        etype = event.type()
        if etype in (QEvent.Type.TouchBegin, QEvent.Type.TouchUpdate,
                     QEvent.Type.TouchEnd, QEvent.Type.TouchCancel):
            self._touch_event(event)
            # Accepted touches are not re-delivered as synthesized mouse events
            event.accept()
            return True
        return super().event(event)

    def _touch_event(self, event: QTouchEvent):
        points = event.points()
        etype = event.type()
        if etype in (QEvent.Type.TouchEnd, QEvent.Type.TouchCancel) or not points:
            self._feed(QPointF(), PointerPhase.UP)
            return
        pos = points[0].position()
        if etype == QEvent.Type.TouchBegin:
            if self.viewport_contains(pos):
                self._feed(pos, PointerPhase.DOWN)
        else:
            self._feed(pos, PointerPhase.MOVE)

    # --- Wheel & keyboard ---

    def wheelEvent(self, event: QWheelEvent):
        if self._session is None or not self._session.is_interactive:
            return
        notches = event.angleDelta().y() / 120
        if notches:
            self._session.zoom_by(notches * ZOOM_STEP)
            self.transform_changed.emit()
            self.update()
        event.accept()

    def keyPressEvent(self, event: QKeyEvent):
        if self._session is None or not self._session.is_interactive:
            super().keyPressEvent(event)
            return
        amount = NUDGE_LARGE if event.modifiers() & Qt.KeyboardModifier.ShiftModifier else NUDGE_SMALL
        key = event.key()
        handled = True
        if key == Qt.Key.Key_Left:
            self._session.nudge(-amount, 0)
        elif key == Qt.Key.Key_Right:
            self._session.nudge(amount, 0)
        elif key == Qt.Key.Key_Up:
            self._session.nudge(0, -amount)
        elif key == Qt.Key.Key_Down:
            self._session.nudge(0, amount)
        elif key in (Qt.Key.Key_Plus, Qt.Key.Key_Equal):
            self._session.zoom_by(ZOOM_STEP)
        elif key == Qt.Key.Key_Minus:
            self._session.zoom_by(-ZOOM_STEP)
        else:
            handled = False

        if handled:
            self.transform_changed.emit()
            self.update()
        else:
            super().keyPressEvent(event)
