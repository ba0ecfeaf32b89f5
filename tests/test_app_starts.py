import os
import sys

import pytest

pytest.importorskip("PyQt6.QtWidgets")


@pytest.mark.skipif(
    sys.platform.startswith("win") and os.environ.get("CI") == "true",
    reason="Windows CI may lack Qt platform plugins",
)
def test_main_window_instantiates(monkeypatch):
    # Ensure Qt can run headless
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    monkeypatch.setenv("PLACEFINDER_OFFLINE", "1")

    from PyQt6.QtWidgets import QApplication

    from placefinder.main_window import MainWindow

    app = QApplication.instance() or QApplication(sys.argv)  # noqa: F841 keep a reference alive
    w = MainWindow()
    try:
        assert w.windowTitle() == "PlaceFinder"
        tab = w.location_tab
        # Short input shows popular cities without starting a worker
        tab.query_input.setText("L")
        assert tab.result_list.count() == 8
        assert tab.controller.pending is None
    finally:
        w.close()
        # Do not call app.quit() here; pytest may run multiple tests
