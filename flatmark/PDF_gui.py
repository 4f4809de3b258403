import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import fitz  # PyMuPDF
from PyQt6.QtWidgets import (QApplication, QMainWindow, QWidget, QVBoxLayout, QHBoxLayout,
                             QLabel, QPushButton, QFileDialog, QLineEdit, QColorDialog,
                             QDoubleSpinBox, QSpinBox, QCheckBox, QGroupBox)
from PyQt6.QtGui import QPixmap, QImage, QPainter, QColor, QFont
from PyQt6.QtCore import Qt, QObject, pyqtSignal

from .PDFProcessor import add_watermark
from .WatermarkConfig import (DEFAULT_COLOR, DEFAULT_OPACITY, MIN_GUI_OPACITY,
                              WatermarkError, WatermarkSpec, watermarked_filename)
from .WatermarkGeometry import PREVIEW_PAGE_WIDTH, preview_placement
from .WatermarkSession import GenerationCounter


class _JobSignals(QObject):
    # generation, output path, result or exception
    finished = pyqtSignal(int, str, object)


class WatermarkGUI(QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle("Flatmark PDF Watermarker")
        self.setMinimumSize(1100, 750)

        # State variables
        self.input_path = ""
        self.source_bytes = None
        self.color_hex = DEFAULT_COLOR

        self.generations = GenerationCounter()
        self.executor = ThreadPoolExecutor(max_workers=1)
        self.signals = _JobSignals()
        self.signals.finished.connect(self.on_job_finished)

        self.init_ui()

    def init_ui(self):
        main_layout = QHBoxLayout()

        # ===========================
        # Left Panel: Controls
        # ===========================
        controls_widget = QWidget()
        controls_layout = QVBoxLayout()
        controls_widget.setFixedWidth(400)

        # --- 1. File Selection Section ---
        file_group = QGroupBox("Source File")
        file_layout = QVBoxLayout()

        self.btn_browse = QPushButton("Select Source PDF")
        self.btn_browse.clicked.connect(self.open_file)
        self.lbl_file = QLabel("No file selected")
        self.lbl_file.setWordWrap(True)
        self.lbl_file.setStyleSheet("color: #666; font-style: italic;")

        file_layout.addWidget(self.btn_browse)
        file_layout.addWidget(self.lbl_file)
        file_group.setLayout(file_layout)

        # --- 2. Watermark Content Section ---
        content_group = QGroupBox("Watermark Text")
        content_layout = QVBoxLayout()

        self.txt_watermark = QLineEdit()
        self.txt_watermark.setPlaceholderText("Watermark text")
        self.txt_watermark.textChanged.connect(self.update_preview)
        self.txt_watermark.textChanged.connect(self.update_process_button)

        content_layout.addWidget(self.txt_watermark)
        content_group.setLayout(content_layout)

        # --- 3. Advanced Settings ---
        settings_group = QGroupBox("Advanced")
        settings_layout = QVBoxLayout()

        self.btn_color = QPushButton(f"Color: {self.color_hex}")
        self.btn_color.clicked.connect(self.pick_color)

        settings_layout.addWidget(QLabel("Opacity (0.1 - 1.0):"))
        self.spin_opacity = QDoubleSpinBox()
        self.spin_opacity.setRange(MIN_GUI_OPACITY, 1.0)
        self.spin_opacity.setValue(DEFAULT_OPACITY)
        self.spin_opacity.setSingleStep(0.05)
        self.spin_opacity.valueChanged.connect(self.update_preview)
        settings_layout.addWidget(self.spin_opacity)

        self.chk_flatten = QCheckBox("Flatten PDF (prevents watermark removal)")
        self.chk_flatten.setChecked(True)

        settings_layout.addWidget(QLabel("Preview page:"))
        self.spin_page = QSpinBox()
        self.spin_page.setMinimum(1)
        self.spin_page.valueChanged.connect(self.update_preview)

        settings_layout.addWidget(self.spin_page)
        settings_layout.addWidget(self.btn_color)
        settings_layout.addWidget(self.chk_flatten)
        settings_group.setLayout(settings_layout)

        # --- Process Button ---
        self.btn_process = QPushButton("Add Watermark & Save")
        self.btn_process.setStyleSheet("""
            QPushButton {
                background-color: #0078D7;
                color: white;
                font-weight: bold;
                height: 45px;
                border-radius: 5px;
            }
            QPushButton:hover { background-color: #0063B1; }
            QPushButton:disabled { background-color: #9BBBD9; }
        """)
        self.btn_process.clicked.connect(self.save_pdf)
        self.btn_process.setEnabled(False)

        controls_layout.addWidget(file_group)
        controls_layout.addWidget(content_group)
        controls_layout.addWidget(settings_group)
        controls_layout.addStretch()
        controls_layout.addWidget(self.btn_process)
        controls_widget.setLayout(controls_layout)

        # ===========================
        # Right Panel: Preview
        # ===========================
        self.preview_area = QLabel("Upload a PDF to preview it here")
        self.preview_area.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.preview_area.setStyleSheet("border: 2px dashed #ccc; background-color: #f0f0f0; color: #888;")

        main_layout.addWidget(controls_widget)
        main_layout.addWidget(self.preview_area, 1)

        central_widget = QWidget()
        central_widget.setLayout(main_layout)
        self.setCentralWidget(central_widget)

    # ===========================
    # Logic Methods
    # ===========================

    def update_process_button(self):
        self.btn_process.setEnabled(bool(self.source_bytes and self.txt_watermark.text().strip()))

    def open_file(self):
        file_path, _ = QFileDialog.getOpenFileName(self, "Open PDF", "", "PDF Files (*.pdf)")
        if file_path:
            self.load_source(file_path)

    def load_source(self, file_path: str):
        self.input_path = file_path
        self.source_bytes = Path(file_path).read_bytes()
        # A new source makes any running job stale; its result will never reset the button
        self.generations.next()
        self.btn_process.setText("Add Watermark & Save")
        self.lbl_file.setText(f"Selected: {Path(file_path).name}")
        self.update_process_button()
        self.update_preview()

    def pick_color(self):
        color = QColorDialog.getColor(QColor(self.color_hex), self, "Watermark Color")
        if color.isValid():
            self.color_hex = color.name()
            self.btn_color.setText(f"Color: {self.color_hex}")
            self.update_preview()

    def update_preview(self):
        """Renders one page at the preview width and overlays the approximate watermark."""
        if not self.source_bytes:
            return

        try:
            doc = fitz.open(stream=self.source_bytes, filetype="pdf")
        except Exception as e:
            self.preview_area.setText("Failed to load PDF.")
            print(e)
            return

        try:
            total_pages = doc.page_count
            self.spin_page.setMaximum(max(1, total_pages))
            page_index = min(self.spin_page.value(), total_pages) - 1
            page = doc.load_page(page_index)

            # Render at the fixed preview width
            page_w, page_h = page.rect.width, page.rect.height
            zoom = PREVIEW_PAGE_WIDTH / page_w
            pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)

            qimg = QImage(pix.samples, pix.width, pix.height, pix.stride, QImage.Format.Format_RGB888)
            canvas_pixmap = QPixmap.fromImage(qimg)
        except Exception as e:
            self.preview_area.setText(f"Error loading preview: {e}")
            print(e)
            return
        finally:
            doc.close()

        wm_text = self.txt_watermark.text()
        if wm_text.strip():
            placement = preview_placement(wm_text, page_w, page_h)

            painter = QPainter(canvas_pixmap)
            painter.setRenderHint(QPainter.RenderHint.Antialiasing)

            font = QFont("Helvetica")
            font.setPixelSize(max(1, round(placement.font_size)))
            painter.setFont(font)
            painter.setOpacity(self.spin_opacity.value())
            painter.setPen(QColor(self.color_hex))

            # Baseline start at the anchor, then rotate about it (-45 on a Y-down canvas)
            painter.translate(placement.anchor_x, placement.anchor_y)
            painter.rotate(placement.rotation)
            painter.drawText(0, 0, wm_text)
            painter.end()

        self.lbl_file.setText(f"Previewing page {page_index + 1} of {total_pages}")
        self.preview_area.setPixmap(canvas_pixmap.scaled(
            self.preview_area.width(),
            self.preview_area.height(),
            Qt.AspectRatioMode.KeepAspectRatio,
            Qt.TransformationMode.SmoothTransformation
        ))

    def save_pdf(self):
        if not self.source_bytes:
            self.lbl_file.setText("Error: No PDF selected!")
            return

        wm_text = self.txt_watermark.text()
        if not wm_text.strip():
            return

        suggested = watermarked_filename(Path(self.input_path).name)
        output_path, _ = QFileDialog.getSaveFileName(self, "Save Watermarked PDF", suggested, "PDF Files (*.pdf)")
        if not output_path:
            return

        try:
            spec = WatermarkSpec.from_hex(wm_text, color=self.color_hex,
                                          opacity=self.spin_opacity.value(),
                                          flatten=self.chk_flatten.isChecked())
        except WatermarkError as e:
            self.lbl_file.setText(f"❌ Error: {e}")
            return

        generation = self.generations.next()
        source = self.source_bytes
        self.btn_process.setText("Processing...")

        def work():
            try:
                return add_watermark(source, spec)
            except Exception as e:
                return e

        future = self.executor.submit(work)
        future.add_done_callback(
            lambda f: self.signals.finished.emit(generation, output_path, f.result())
        )

    def on_job_finished(self, generation, output_path, outcome):
        if not self.generations.is_current(generation):
            # A newer job or a new source superseded this one
            return

        self.btn_process.setText("Add Watermark & Save")
        if isinstance(outcome, Exception):
            self.lbl_file.setText("❌ Failed to process the PDF. Make sure it's a valid PDF file.")
            print(outcome)
            return

        Path(output_path).write_bytes(outcome.data)
        self.lbl_file.setText("✅ Success! PDF Saved.")

    def closeEvent(self, event):
        self.executor.shutdown(wait=False, cancel_futures=True)
        super().closeEvent(event)


def main():
    app = QApplication(sys.argv)
    window = WatermarkGUI()
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
