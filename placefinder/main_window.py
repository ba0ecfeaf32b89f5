from __future__ import annotations

from PyQt6.QtWidgets import (
    QMainWindow,
    QTabWidget,
    QWidget,
    QVBoxLayout,
)

from .tabs.location_tab import LocationTab


class MainWindow(QMainWindow):
    def __init__(self) -> None:
        super().__init__()
        self.setWindowTitle("PlaceFinder")
        self.resize(900, 700)

        central = QWidget(self)
        vbox = QVBoxLayout(central)
        vbox.setContentsMargins(6, 6, 6, 6)
        vbox.setSpacing(6)

        # Tabs
        self.tabs = QTabWidget()
        vbox.addWidget(self.tabs, 1)
        self.setCentralWidget(central)

        self.location_tab = LocationTab(self)
        self.tabs.addTab(self.location_tab, "Locations")

    def closeEvent(self, event) -> None:  # type: ignore[no-untyped-def]
        # Let in-flight resolutions finish before Qt tears the threads down
        self.location_tab.shutdown()
        super().closeEvent(event)
