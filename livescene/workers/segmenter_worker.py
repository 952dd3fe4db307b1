"""QThread worker that initializes a MaskSource off the GUI thread."""

from __future__ import annotations

from PySide6.QtCore import QCoreApplication, QThread, Signal, Slot

from livescene.segmentation.base import MaskSource


class SegmenterInitWorker(QThread):
    """Runs ``mask_source.init()`` in a background thread.

    Signals carry the generation of the pipeline instance that asked for
    the init, so results for torn-down instances can be recognised.

    Signals:
        ready: generation
        failed: (generation, error message)
    """

    ready = Signal(int)
    failed = Signal(int, str)

    def __init__(self, mask_source: MaskSource, generation: int, parent=None):
        super().__init__(parent)
        self.mask_source = mask_source
        self.generation = generation
        self._source_closed = False

    def run(self) -> None:
        try:
            self.mask_source.init()
        except Exception as e:
            self.failed.emit(self.generation, str(e) or type(e).__name__)
            return
        self.ready.emit(self.generation)

    def discard(self) -> None:
        """Abandon the result: close the mask source once init returns.

        Does not block. The application takes ownership of the worker so
        it outlives whoever started it, and deletes it when it finishes.
        """
        self.setParent(QCoreApplication.instance())
        self.finished.connect(self._close_source)
        self.finished.connect(self.deleteLater)
        if not self.isRunning():
            self._close_source()
            self.deleteLater()

    @Slot()
    def _close_source(self) -> None:
        if not self._source_closed:
            self._source_closed = True
            self.mask_source.close()
