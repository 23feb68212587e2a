"""
Mod Shelf - GUI (PySide6)
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from PySide6.QtCore import Qt, QThread, Signal, QSettings
from PySide6.QtGui import QColor, QFont, QGuiApplication, QIcon, QPalette, QPixmap
from PySide6.QtWidgets import (
    QApplication,
    QDialog,
    QDialogButtonBox,
    QFileDialog,
    QFormLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QPlainTextEdit,
    QProgressBar,
    QPushButton,
    QSplitter,
    QTreeWidget,
    QTreeWidgetItem,
    QVBoxLayout,
    QWidget,
)

from admission import Collision
from archive_reader import SUPPORTED_EXTENSIONS
from errors import ModShelfError
from lifecycle import ModLifecycleManager, ModRecord
from library_state import LibraryState
from path_policy import default_data_root
from registry_store import RegistryStore

ARCHIVE_FILTER = "Mod archives (*.zip *.7z *.rar)"


# ── Worker Thread ─────────────────────────────────────────────────────

class WorkerThread(QThread):
    """Run a blocking operation off the main thread."""

    finished_signal = Signal(bool, str)  # success, message

    def __init__(self, func, *args, **kwargs):
        super().__init__()
        self.func = func
        self.args = args
        self.kwargs = kwargs

    def run(self):
        try:
            result = self.func(*self.args, **self.kwargs)
            if isinstance(result, tuple) and len(result) == 2:
                self.finished_signal.emit(result[0], result[1])
            else:
                self.finished_signal.emit(True, "Done")
        except ModShelfError as e:
            self.finished_signal.emit(False, str(e))
        except Exception as e:
            logging.getLogger("modshelf").exception("Operation failed")
            self.finished_signal.emit(False, f"Unexpected error: {e}")


# ── Settings Dialog ───────────────────────────────────────────────────

class SettingsDialog(QDialog):
    def __init__(self, data_root: str, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Settings")
        self.setMinimumWidth(500)

        layout = QFormLayout(self)

        row = QHBoxLayout()
        self.data_root_edit = QLineEdit(data_root)
        browse = QPushButton("Browse...")
        browse.clicked.connect(self._browse)
        row.addWidget(self.data_root_edit)
        row.addWidget(browse)
        layout.addRow("Data folder:", row)

        buttons = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)
        layout.addRow(buttons)

    def _browse(self):
        path = QFileDialog.getExistingDirectory(self, "Select Data Folder", self.data_root_edit.text())
        if path:
            self.data_root_edit.setText(path)

    def get_value(self) -> str:
        return self.data_root_edit.text().strip()


# ── Theme ─────────────────────────────────────────────────────────────

def _dark_palette() -> QPalette:
    palette = QPalette()
    palette.setColor(QPalette.Window, QColor("#202124"))
    palette.setColor(QPalette.WindowText, QColor("#e8eaed"))
    palette.setColor(QPalette.Base, QColor("#17181a"))
    palette.setColor(QPalette.AlternateBase, QColor("#26272b"))
    palette.setColor(QPalette.Text, QColor("#e8eaed"))
    palette.setColor(QPalette.Button, QColor("#2d2e32"))
    palette.setColor(QPalette.ButtonText, QColor("#e8eaed"))
    palette.setColor(QPalette.Highlight, QColor("#4f8cff"))
    palette.setColor(QPalette.HighlightedText, QColor("#ffffff"))
    return palette


def apply_system_theme(app: QApplication):
    scheme = QGuiApplication.styleHints().colorScheme()
    if scheme == Qt.ColorScheme.Dark:
        app.setPalette(_dark_palette())
    else:
        app.setPalette(app.style().standardPalette())


# ── Main Window ───────────────────────────────────────────────────────

class MainWindow(QMainWindow):
    # Registry changes may be reported from the worker thread; Qt queues
    # these emissions onto the main thread.
    _log_message = Signal(str)
    _state_changed = Signal()

    def __init__(
        self,
        logger: logging.Logger | None = None,
        *,
        data_root_override: str | None = None,
        settings_org: str = "ModShelf",
        settings_app: str = "ModShelf",
        persist_settings: bool = True,
        release_registry_name: bool = False,
    ):
        super().__init__()
        self._logger = logger or logging.getLogger("modshelf")
        self.setWindowTitle("Mod Shelf")
        self.setMinimumSize(900, 600)
        self.setAcceptDrops(True)

        self._persist_settings = persist_settings
        self._release_registry_name = release_registry_name
        self.settings = QSettings(settings_org, settings_app)
        stored = self.settings.value("data_root", str(default_data_root()), type=str)
        self.data_root = data_root_override if data_root_override is not None else stored

        self.state: Optional[LibraryState] = None
        self._unsubscribe = None
        self.worker: Optional[WorkerThread] = None
        self._rejected = False

        self._build_ui()
        self._log_message.connect(self.log_text.appendPlainText)
        self._state_changed.connect(self._populate_lists)
        self._init_state()

    def _build_ui(self):
        central = QWidget()
        self.setCentralWidget(central)
        main_layout = QVBoxLayout(central)

        # ── Toolbar row ───────────────────────────────────────────────
        toolbar = QHBoxLayout()

        self.settings_btn = QPushButton("⚙ Settings")
        self.settings_btn.clicked.connect(self._open_settings)
        toolbar.addWidget(self.settings_btn)

        self.refresh_btn = QPushButton("🔄 Refresh")
        self.refresh_btn.clicked.connect(self._refresh)
        toolbar.addWidget(self.refresh_btn)

        self.add_btn = QPushButton("📦 Add Mod...")
        self.add_btn.clicked.connect(self._add_from_dialog)
        toolbar.addWidget(self.add_btn)

        toolbar.addStretch()

        self.status_label = QLabel()
        toolbar.addWidget(self.status_label)

        main_layout.addLayout(toolbar)

        self.banner = QGroupBox("Cannot Install")
        self.banner.setVisible(False)
        banner_layout = QVBoxLayout(self.banner)
        banner_layout.setContentsMargins(12, 24, 12, 10)
        self.banner_label = QLabel()
        self.banner_label.setWordWrap(True)
        self.banner_label.setTextFormat(Qt.PlainText)
        banner_layout.addWidget(self.banner_label)
        main_layout.addWidget(self.banner)

        # ── Splitter: mod lists | log ─────────────────────────────────
        splitter = QSplitter(Qt.Vertical)

        lists_widget = QWidget()
        lists_layout = QHBoxLayout(lists_widget)
        lists_layout.setContentsMargins(0, 0, 0, 0)

        self.enabled_tree = self._make_tree()
        self.disabled_tree = self._make_tree()
        self._active_tree = self.enabled_tree
        for title, tree in (("Enabled", self.enabled_tree), ("Disabled", self.disabled_tree)):
            tree.itemPressed.connect(lambda _item, _col, t=tree: self._set_active_tree(t))
            column = QVBoxLayout()
            column.addWidget(QLabel(f"<b>{title}</b>"))
            column.addWidget(tree, 1)
            lists_layout.addLayout(column)

        top_widget = QWidget()
        top_layout = QVBoxLayout(top_widget)
        top_layout.setContentsMargins(0, 0, 0, 0)
        top_layout.addWidget(lists_widget, 1)

        drop_hint = QLabel("Drop .zip, .7z or .rar mod archives onto this window to install them.")
        drop_hint.setAlignment(Qt.AlignCenter)
        top_layout.addWidget(drop_hint)

        action_row = QHBoxLayout()
        self.disable_btn = QPushButton("⏸ Disable")
        self.disable_btn.clicked.connect(self._disable_selected)
        action_row.addWidget(self.disable_btn)

        self.enable_btn = QPushButton("▶ Enable")
        self.enable_btn.clicked.connect(self._enable_selected)
        action_row.addWidget(self.enable_btn)

        self.delete_btn = QPushButton("🗑 Delete")
        self.delete_btn.clicked.connect(self._delete_selected)
        action_row.addWidget(self.delete_btn)

        action_row.addStretch()
        top_layout.addLayout(action_row)

        splitter.addWidget(top_widget)

        bottom_widget = QWidget()
        bottom_layout = QVBoxLayout(bottom_widget)
        bottom_layout.setContentsMargins(0, 0, 0, 0)
        bottom_layout.addWidget(QLabel("<b>Log</b>"))

        self.log_text = QPlainTextEdit()
        self.log_text.setReadOnly(True)
        self.log_text.setFont(QFont("Consolas", 9))
        self.log_text.setMaximumBlockCount(5000)
        bottom_layout.addWidget(self.log_text, 1)

        splitter.addWidget(bottom_widget)
        splitter.setChildrenCollapsible(False)
        splitter.setStretchFactor(0, 5)
        splitter.setStretchFactor(1, 2)
        main_layout.addWidget(splitter)

        self.progress = QProgressBar()
        self.progress.setVisible(False)
        self.progress.setRange(0, 0)  # indeterminate
        main_layout.addWidget(self.progress)

    @staticmethod
    def _make_tree() -> QTreeWidget:
        tree = QTreeWidget()
        tree.setHeaderLabels(["Mod", "Author", "Files"])
        tree.setColumnWidth(0, 240)
        tree.setColumnWidth(1, 120)
        tree.setRootIsDecorated(False)
        tree.setSelectionMode(QTreeWidget.SingleSelection)
        return tree

    # ── State Init ────────────────────────────────────────────────────

    def _init_state(self):
        if self._unsubscribe:
            self._unsubscribe()
        self.state = None

        if not self.data_root:
            self._append_log("Data folder not configured. Open Settings to set it.")
            self.status_label.setText("Not configured")
            return

        store = RegistryStore(self.data_root, release_names=self._release_registry_name)
        manager = ModLifecycleManager(self.data_root, store=store, log_callback=self._append_log)
        self.state = LibraryState(manager)
        self._unsubscribe = self.state.subscribe(lambda _state: self._state_changed.emit())
        self._append_log(f"Data folder: {self.data_root}")
        self.status_label.setText("Ready")
        self._refresh()

    # ── Logging / Banner ──────────────────────────────────────────────

    def _append_log(self, msg: str):
        self._logger.info(msg)
        self._log_message.emit(msg)  # thread-safe: Qt queues this to the main thread

    def _set_banner_message(self, message: str | None):
        if not message:
            self.banner.setVisible(False)
            return
        border, background, text = ("#d16060", "#3b1e1e", "#ffe2e2")
        self.banner.setStyleSheet(
            "QGroupBox {"
            f"border: 1px solid {border};"
            "border-radius: 6px;"
            "margin-top: 10px;"
            "padding-top: 8px;"
            f"background-color: {background};"
            "}"
            "QGroupBox::title {"
            "subcontrol-origin: margin;"
            "left: 10px;"
            "padding: 0 6px 0 6px;"
            f"color: {text};"
            "}"
        )
        self.banner_label.setStyleSheet(f"color: {text}; background: transparent;")
        self.banner_label.setText(message)
        self.banner.setVisible(True)

    def _failure_text(self) -> str | None:
        failure = self.state.last_failure if self.state else None
        if failure is None:
            return None
        if isinstance(failure, Collision):
            names = []
            for mod_id in sorted(failure.owner_ids):
                rec = self.state.record(mod_id)
                names.append(f"  • {rec.metadata.name if rec else mod_id}")
            return (
                "This mod uses files that belong to enabled mods:\n\n"
                + "\n".join(names)
                + "\n\nDisable the highlighted mod(s) and try again."
            )
        return failure.message

    # ── Lists ─────────────────────────────────────────────────────────

    def _refresh(self):
        if not self.state:
            return
        self._append_log("─── Loading mods... ───")
        self.state.reload()

    def _populate_lists(self):
        if not self.state:
            return
        for tree, records in (
            (self.enabled_tree, self.state.enabled),
            (self.disabled_tree, self.state.disabled),
        ):
            tree.clear()
            for rec in records.values():
                tree.addTopLevelItem(self._make_item(rec))
        self._set_banner_message(self._failure_text())
        self.status_label.setText(
            f"{len(self.state.enabled)} enabled, {len(self.state.disabled)} disabled"
        )

    def _make_item(self, rec: ModRecord) -> QTreeWidgetItem:
        meta = rec.metadata
        item = QTreeWidgetItem()
        item.setText(0, meta.name)
        item.setText(1, meta.author)
        item.setText(2, str(len(meta.files)))
        item.setToolTip(0, meta.description)
        item.setData(0, Qt.UserRole, meta.id)
        if rec.icon:
            pixmap = QPixmap()
            if pixmap.loadFromData(rec.icon):
                item.setIcon(0, QIcon(pixmap))
        if meta.id in self.state.collisions:
            item.setForeground(0, QColor("#d16060"))
        return item

    def _set_active_tree(self, tree: QTreeWidget):
        self._active_tree = tree
        other = self.disabled_tree if tree is self.enabled_tree else self.enabled_tree
        other.clearSelection()

    @staticmethod
    def _selected_id(tree: QTreeWidget) -> str | None:
        item = tree.currentItem()
        return item.data(0, Qt.UserRole) if item else None

    # ── Add ───────────────────────────────────────────────────────────

    def _add_from_dialog(self):
        path, _ = QFileDialog.getOpenFileName(self, "Add Mod", "", ARCHIVE_FILTER)
        if path:
            self._add_archive(path)

    def _add_archive(self, path: str):
        if not self.state:
            QMessageBox.warning(self, "Not Configured", "Set a data folder in Settings first.")
            return
        self._append_log(f"Adding {Path(path).name}...")
        self._run_in_worker(self._add_archive_job, path)

    def _add_archive_job(self, path: str) -> tuple[bool, str]:
        result = self.state.add_archive(path)
        if result.ok:
            return True, f"Installed {Path(path).name}"
        self._rejected = True
        return False, result.reason.message

    def dragEnterEvent(self, event):
        if event.mimeData().hasUrls():
            event.acceptProposedAction()

    def dropEvent(self, event):
        for url in event.mimeData().urls():
            path = url.toLocalFile()
            if Path(path).suffix.lower() in SUPPORTED_EXTENSIONS:
                self._add_archive(path)
                break
            self._append_log(f"Ignored {path}: not a supported archive")

    # ── Enable / Disable / Delete ─────────────────────────────────────

    def _enable_selected(self):
        mod_id = self._selected_id(self.disabled_tree)
        if mod_id and self.state:
            self._run_in_worker(self.state.enable, mod_id)

    def _disable_selected(self):
        mod_id = self._selected_id(self.enabled_tree)
        if mod_id and self.state:
            self._run_in_worker(self.state.disable, mod_id)

    def _delete_selected(self):
        if not self.state:
            return
        mod_id = self._selected_id(self._active_tree)
        rec = self.state.record(mod_id) if mod_id else None
        if rec is None:
            return

        reply = QMessageBox.question(
            self,
            "Confirm Delete",
            f"Delete '{rec.metadata.name}'?\n\n"
            f"This will remove {len(rec.metadata.files)} file(s) from the content folder.",
            QMessageBox.Yes | QMessageBox.No,
        )
        if reply != QMessageBox.Yes:
            return
        self._run_in_worker(self.state.delete, mod_id)

    # ── Worker Thread Management ──────────────────────────────────────

    def _run_in_worker(self, func, *args, **kwargs):
        self._set_busy(True)
        self._rejected = False

        self.worker = WorkerThread(func, *args, **kwargs)
        self.worker.finished_signal.connect(self._on_worker_finished)
        self.worker.start()

    def _on_worker_finished(self, success: bool, message: str):
        self._set_busy(False)

        if success:
            self._append_log(f"✅ {message}")
        else:
            self._append_log(f"❌ {message}")
            # Admission failures are already shown in the banner.
            if not self._rejected:
                QMessageBox.warning(self, "Operation Failed", message)
        self._populate_lists()

    def _set_busy(self, busy: bool):
        self.progress.setVisible(busy)
        self.status_label.setText("Working..." if busy else "Ready")
        for btn in (
            self.add_btn,
            self.enable_btn,
            self.disable_btn,
            self.delete_btn,
            self.refresh_btn,
            self.settings_btn,
        ):
            btn.setEnabled(not busy)
        self.setAcceptDrops(not busy)

    # ── Settings ──────────────────────────────────────────────────────

    def _open_settings(self):
        dlg = SettingsDialog(self.data_root, self)

        if dlg.exec() == QDialog.Accepted:
            self.data_root = dlg.get_value()
            if self._persist_settings:
                self.settings.setValue("data_root", self.data_root)

            self._append_log("Settings updated, reinitializing...")
            self._init_state()

    # ── Close ─────────────────────────────────────────────────────────

    def closeEvent(self, event):
        if self.worker and self.worker.isRunning():
            reply = QMessageBox.question(
                self,
                "Operation in Progress",
                "An operation is still running. Quit anyway?",
                QMessageBox.Yes | QMessageBox.No,
            )
            if reply != QMessageBox.Yes:
                event.ignore()
                return
        event.accept()


# ── Entry Point ───────────────────────────────────────────────────────

def main(
    logger: logging.Logger | None = None,
    *,
    data_root_override: str | None = None,
    settings_org: str = "ModShelf",
    settings_app: str = "ModShelf",
    persist_settings: bool = True,
    release_registry_name: bool = False,
):
    app = QApplication(sys.argv)
    app.setStyle("Fusion")
    apply_system_theme(app)
    app.styleHints().colorSchemeChanged.connect(lambda _scheme: apply_system_theme(app))

    window = MainWindow(
        logger=logger,
        data_root_override=data_root_override,
        settings_org=settings_org,
        settings_app=settings_app,
        persist_settings=persist_settings,
        release_registry_name=release_registry_name,
    )
    window.show()

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
