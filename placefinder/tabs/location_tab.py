from __future__ import annotations

import logging
from typing import List, Optional

from PyQt6.QtCore import QObject, QSettings, Qt, QThread, QTimer, pyqtSignal, pyqtSlot
from PyQt6.QtGui import QTextCursor
from PyQt6.QtWidgets import (
    QComboBox,
    QFormLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMessageBox,
    QPushButton,
    QSizePolicy,
    QTabWidget,
    QTextEdit,
    QVBoxLayout,
    QWidget,
)

from placefinder.geocoding import (
    AutocompletePaginationController,
    LocationCandidate,
    LocationService,
    PendingRequest,
    build_location_service,
)
from placefinder.settings import Settings

logger = logging.getLogger(__name__)

LANGUAGES = ("en", "it", "es", "fr", "de", "ja")
LOAD_MORE_MARGIN = 3


def _network_probe():
    """Connectivity callable backed by QNetworkInformation, or None if no backend loads."""
    try:
        from PyQt6.QtNetwork import QNetworkInformation

        if not QNetworkInformation.loadDefaultBackend():
            return None
        info = QNetworkInformation.instance()
    except (ImportError, AttributeError) as e:
        logger.info("Network reachability unavailable: %s", e)
        return None
    if info is None:
        return None
    return lambda: info.reachability() != QNetworkInformation.Reachability.Disconnected


class ResolveWorker(QObject):
    # Signals
    log = pyqtSignal(str)
    finished = pyqtSignal(object, object, str)  # pending, results (or None), advisory

    def __init__(self, controller: AutocompletePaginationController, pending: PendingRequest) -> None:
        super().__init__()
        self.controller = controller
        self.pending = pending

    @pyqtSlot()
    def run(self) -> None:
        # Resolve off the UI thread; emit signals instead of touching UI
        try:
            results = self.controller.execute(self.pending)
        except Exception as e:
            logger.exception("Resolution failed for %r", self.pending.query)
            self.log.emit(f"Resolution failed for '{self.pending.query}': {e}")
            results = []
        advisory = self.controller.resolver.last_advisory or ""
        self.finished.emit(self.pending, results, advisory)


class LocationTab(QWidget):
    # Provider diagnostics arrive from worker threads; queued onto the UI thread
    provider_message = pyqtSignal(str)

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setObjectName("LocationTab")
        self.settings = QSettings("PlaceFinder", "Resolver")
        self.service: Optional[LocationService] = None
        self._workers: List[QThread] = []
        self._scheduled: Optional[PendingRequest] = None

        layout = QVBoxLayout(self)
        layout.setContentsMargins(12, 12, 12, 12)
        layout.setSpacing(10)

        header = QLabel("Find a city (GeoDB, Nominatim, bundled gazetteer)")
        header.setWordWrap(True)
        header.setStyleSheet("font-weight: 600;")
        layout.addWidget(header)

        form = QFormLayout()
        self.email_input = QLineEdit()
        self.email_input.setMinimumWidth(360)
        self.email_input.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Fixed)
        self.email_input.setPlaceholderText("Your email (sent to Nominatim as contact)")
        form.addRow("Email:", self.email_input)

        self.key_input = QLineEdit()
        self.key_input.setEchoMode(QLineEdit.EchoMode.Password)
        self.key_input.setPlaceholderText("RapidAPI key for GeoDB Cities (optional)")
        form.addRow("GeoDB key:", self.key_input)

        self.language_combo = QComboBox()
        self.language_combo.addItems(LANGUAGES)
        form.addRow("Language:", self.language_combo)
        layout.addLayout(form)

        self._load_settings()
        self.email_input.editingFinished.connect(self._on_credentials_changed)
        self.key_input.editingFinished.connect(self._on_credentials_changed)
        self.language_combo.currentTextChanged.connect(self._on_language_changed)

        query_row = QHBoxLayout()
        self.query_input = QLineEdit()
        self.query_input.setPlaceholderText("Type at least two characters…")
        self.query_input.textChanged.connect(self.on_query_changed)
        query_row.addWidget(self.query_input, 1)
        self.clear_cache_btn = QPushButton("Clear Cache")
        self.clear_cache_btn.setToolTip("Forget every cached result")
        self.clear_cache_btn.clicked.connect(self.on_clear_cache)
        query_row.addWidget(self.clear_cache_btn)
        layout.addLayout(query_row)

        self.advisory_label = QLabel("")
        self.advisory_label.setStyleSheet("color: #b35900;")
        self.advisory_label.setWordWrap(True)
        layout.addWidget(self.advisory_label)

        # Sub-tabs: Results and Log
        self.subtabs = QTabWidget()
        self.subtabs.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)

        self.result_list = QListWidget()
        self.result_list.verticalScrollBar().valueChanged.connect(self._on_scrolled)
        self.subtabs.addTab(self.result_list, "Results")

        self.log = QTextEdit()
        self.log.setReadOnly(True)
        self.log.setMinimumHeight(200)
        self.log.setPlaceholderText("Resolution logs will appear here…")
        self.subtabs.addTab(self.log, "Log")
        layout.addWidget(self.subtabs, 1)

        self.status_label = QLabel("")
        self.status_label.setStyleSheet("color: #555; font-style: italic;")
        layout.addWidget(self.status_label)

        self._debounce = QTimer(self)
        self._debounce.setSingleShot(True)
        self._debounce.timeout.connect(self._on_debounce_elapsed)

        self.provider_message.connect(lambda msg: self.log_append(f"[Provider] {msg}"))

        self._build_service()
        self._show_popular()

    # -----------------
    # Service wiring
    # -----------------
    def _build_service(self) -> None:
        settings = Settings()
        email = self.email_input.text().strip()
        key = self.key_input.text().strip()
        if email:
            settings.NOMINATIM_EMAIL = email
        if key:
            settings.GEODB_API_KEY = key
        self.service = build_location_service(
            settings,
            is_online=_network_probe(),
            provider_log=self.provider_message.emit,
        )
        self.log_append(
            f"GeoDB tier {'enabled' if settings.GEODB_API_KEY else 'disabled (no key)'}; "
            f"page size {settings.PAGE_SIZE}"
        )

    @property
    def controller(self) -> AutocompletePaginationController:
        return self.service.controller

    @property
    def language(self) -> str:
        return self.language_combo.currentText() or "en"

    # -----------------
    # Input handling
    # -----------------
    def on_query_changed(self, text: str) -> None:
        pending = self.controller.on_input(text, self.language)
        if pending is None:
            if len(text.strip()) < 2:
                self._debounce.stop()
                self._scheduled = None
                self.advisory_label.clear()
                self._show_popular()
            return
        self._scheduled = pending
        self.status_label.setText(f"Searching '{pending.query}'…")
        self._debounce.start(int(self.controller.debounce * 1000))

    def _on_debounce_elapsed(self) -> None:
        pending = self._scheduled
        self._scheduled = None
        if pending is None or pending.cancelled or pending is not self.controller.pending:
            return
        self._start_worker(pending)

    def _on_scrolled(self, value: int) -> None:
        bar = self.result_list.verticalScrollBar()
        if bar.maximum() == 0 or value < bar.maximum() - LOAD_MORE_MARGIN:
            return
        pending = self.controller.request_load_more()
        if pending is None:
            return
        self.status_label.setText(f"Loading page {pending.page + 1}…")
        self._start_worker(pending)

    def _on_language_changed(self, language: str) -> None:
        self.settings.setValue("language", language)
        self.on_query_changed(self.query_input.text())

    def _on_credentials_changed(self) -> None:
        self._save_settings()
        self.controller.reset()
        self._build_service()
        self.on_query_changed(self.query_input.text())

    # -----------------
    # Worker lifecycle
    # -----------------
    def _start_worker(self, pending: PendingRequest) -> None:
        thread = QThread(self)
        worker = ResolveWorker(self.controller, pending)
        worker.moveToThread(thread)
        thread.started.connect(worker.run)
        worker.log.connect(self.log_append)
        worker.finished.connect(self._on_worker_finished)
        # Ensure cleanup
        worker.finished.connect(thread.quit)
        thread.finished.connect(worker.deleteLater)
        thread.finished.connect(lambda t=thread: self._forget_worker(t))
        thread.finished.connect(thread.deleteLater)
        # Keep a reference; the worker is parented to nothing once moved
        thread.worker = worker
        self._workers.append(thread)
        thread.start()

    def _forget_worker(self, thread: QThread) -> None:
        if thread in self._workers:
            self._workers.remove(thread)

    def _on_worker_finished(self, pending: PendingRequest, results, advisory: str) -> None:
        if not self.controller.apply(pending, results):
            self.log_append(f"Discarded stale results for '{pending.query}'")
            return
        self.advisory_label.setText(advisory)
        state = self.controller.state
        self._render(state.accumulated_results)
        more = " (scroll for more)" if state.has_more_results else ""
        self.status_label.setText(f"{len(state.accumulated_results)} results for '{pending.query}'{more}")
        self.log_append(f"'{pending.query}' page {pending.page}: {len(results or [])} candidates")

    def shutdown(self) -> None:
        for thread in list(self._workers):
            thread.quit()
            thread.wait(2000)

    # -----------------
    # Rendering
    # -----------------
    def _show_popular(self) -> None:
        self._render(self.service.get_popular())
        self.status_label.setText("Popular cities")

    def _render(self, candidates: List[LocationCandidate]) -> None:
        bar = self.result_list.verticalScrollBar()
        position = bar.value()
        self.result_list.clear()
        for candidate in candidates:
            if candidate.localized_name:
                text = f"{candidate.name} ({candidate.localized_name}), {candidate.country}"
            else:
                text = candidate.label
            item = QListWidgetItem(text)
            item.setData(Qt.ItemDataRole.UserRole, candidate.id)
            item.setToolTip(f"{candidate.latitude:.4f}, {candidate.longitude:.4f} [{candidate.source}]")
            self.result_list.addItem(item)
        bar.setValue(position)

    def log_append(self, msg: str) -> None:
        self.log.append(msg)
        self.log.moveCursor(QTextCursor.MoveOperation.End)
        self.log.ensureCursorVisible()

    # -----------------
    # Cache and settings
    # -----------------
    def on_clear_cache(self) -> None:
        stats = self.service.cache.get_cache_stats()
        answer = QMessageBox.question(
            self,
            "Clear Cache",
            f"Forget {stats['total']} cached queries ({stats['with_results']} with results)?",
        )
        if answer != QMessageBox.StandardButton.Yes:
            return
        if self.service.clear_cache():
            self.log_append(f"Cache cleared: {stats['total']} entries")
        else:
            self.log_append("Cache already empty; nothing to clear.")

    def _load_settings(self) -> None:
        email = self.settings.value("nominatimEmail", "", type=str) or ""
        key = self.settings.value("geodbApiKey", "", type=str) or ""
        language = self.settings.value("language", "en", type=str) or "en"
        self.email_input.setText(email)
        self.key_input.setText(key)
        if language in LANGUAGES:
            self.language_combo.setCurrentText(language)

    def _save_settings(self) -> None:
        email = self.email_input.text().strip()
        if not email or "@" in email:
            self.settings.setValue("nominatimEmail", email)
        self.settings.setValue("geodbApiKey", self.key_input.text().strip())
        self.settings.sync()
