"""sidebar_terminal.terminal_ui

PySide6 host for the terminal engine.

- `TerminalView` is the display surface: it renders the engine's output
  (prompt colours, backspace-erase, CR LF) and turns key presses into input
  units.
- `QtDisplay` adapts a view to the `Display` contract.
- `TerminalWindow` shows one or more terminals in tabs, one engine per tab.

Threading:
- UI runs on the main thread (Qt event loop)
- External commands complete on worker threads
- All display calls are queued via Qt signals (thread-safe)

Run:
    python -m sidebar_terminal.main
"""

from __future__ import annotations

import logging
import re
import secrets
import sys
from dataclasses import dataclass
from pathlib import Path

from PySide6 import QtCore, QtGui, QtWidgets

from .ansi import CRLF, iter_sgr_segments
from .config import TerminalConfig, load_config
from .engine import TerminalEngine


_LOG = logging.getLogger("sidebar_terminal.terminal_ui")
_LOG_INITIALIZED = False

_FG = "#d6deeb"
_BG = "#0b0e14"
_SGR_COLORS = {
    31: "#ff5555",
    32: "#50fa7b",
}
# \x08 is backspace; a bare \b would be a word boundary here.
_CONTROL_SPLIT_RE = re.compile(r"(\r\n|\r|\n|\x08)")

_QSS = """
QWidget#root {
    background: #111520;
}
QLabel#title {
    color: #eaf2ff;
    font-weight: 600;
}
QLabel#cwd_label {
    color: rgba(230,240,255,0.70);
}
QPlainTextEdit#terminal_view {
    background: %(bg)s;
    color: %(fg)s;
    border: 1px solid rgba(255,255,255,0.08);
    border-radius: 14px;
    padding: 10px;
}
QPushButton#btn_ghost {
    background: transparent;
    color: #eaf2ff;
    border: 1px solid rgba(255,255,255,0.15);
    border-radius: 10px;
    padding: 4px 12px;
}
""" % {"bg": _BG, "fg": _FG}


def _setup_run_logging(state_dir: Path) -> Path:
    """Configure terminal + file logging (clears file on startup)."""

    global _LOG_INITIALIZED  # noqa: PLW0603
    log_path = (Path(state_dir) / "terminal.log").resolve()
    if _LOG_INITIALIZED:
        return log_path

    root = logging.getLogger("sidebar_terminal")
    root.setLevel(logging.INFO)
    root.propagate = False
    root.handlers.clear()

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    sh = logging.StreamHandler(stream=sys.stderr)
    sh.setFormatter(fmt)
    root.addHandler(sh)

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(log_path), mode="w", encoding="utf-8")
        fh.setFormatter(fmt)
        root.addHandler(fh)
    except OSError as e:
        _LOG.warning("file logging disabled: %s", e)

    _LOG_INITIALIZED = True
    _LOG.info("=== Terminal start ===")
    _LOG.info("log_path=%s", str(log_path))
    return log_path


class TerminalView(QtWidgets.QPlainTextEdit):
    """Terminal-like text surface. Input is forwarded, never edited in place."""

    input_unit = QtCore.Signal(str)

    def __init__(self, config: TerminalConfig | None = None, parent: QtWidgets.QWidget | None = None) -> None:
        super().__init__(parent)
        cfg = config or TerminalConfig()

        self.setObjectName("terminal_view")
        self.setUndoRedoEnabled(False)
        self.setAcceptDrops(False)
        self.setLineWrapMode(QtWidgets.QPlainTextEdit.LineWrapMode.WidgetWidth)
        self.setMaximumBlockCount(5000)
        self.setContextMenuPolicy(QtCore.Qt.ContextMenuPolicy.NoContextMenu)

        font = QtGui.QFont()
        font.setFamilies(["Menlo", "Monaco", "Consolas", "Cascadia Mono", "Courier New"])
        font.setStyleHint(QtGui.QFont.StyleHint.Monospace)
        font.setPixelSize(int(cfg.font_size))
        self.setFont(font)
        self.setCursorWidth(max(2, int(cfg.font_size) // 2))

        self._default_fmt = QtGui.QTextCharFormat()
        self._default_fmt.setForeground(QtGui.QColor(_FG))
        self._fmt = QtGui.QTextCharFormat(self._default_fmt)

    # ---- output ----

    def append_ansi(self, text: str) -> None:
        cur = self.textCursor()
        cur.movePosition(QtGui.QTextCursor.MoveOperation.End)
        for codes, plain in iter_sgr_segments(text):
            if codes is not None:
                self._apply_sgr(codes)
                continue
            self._insert_plain(cur, plain)
        self.setTextCursor(cur)

    def _apply_sgr(self, codes: tuple[int, ...]) -> None:
        for code in codes:
            if code in (0, 39):
                self._fmt = QtGui.QTextCharFormat(self._default_fmt)
            elif code in _SGR_COLORS:
                fmt = QtGui.QTextCharFormat(self._fmt)
                fmt.setForeground(QtGui.QColor(_SGR_COLORS[code]))
                self._fmt = fmt

    def _insert_plain(self, cur: QtGui.QTextCursor, text: str) -> None:
        for part in _CONTROL_SPLIT_RE.split(text):
            if not part or part == "\r":
                continue
            if part in ("\r\n", "\n"):
                cur.insertBlock()
            elif part == "\b":
                if cur.positionInBlock() > 0:
                    cur.deletePreviousChar()
            else:
                cur.insertText(part, self._fmt)

    def clear_screen(self) -> None:
        self.clear()
        self._fmt = QtGui.QTextCharFormat(self._default_fmt)

    def scroll_to_bottom(self) -> None:
        sb = self.verticalScrollBar()
        sb.setValue(sb.maximum())
        self.ensureCursorVisible()

    def scroll_to_top(self) -> None:
        sb = self.verticalScrollBar()
        sb.setValue(sb.minimum())

    def scroll_to(self, bottom: bool) -> None:
        if bottom:
            self.scroll_to_bottom()
        else:
            self.scroll_to_top()

    # ---- input ----

    def keyPressEvent(self, event: QtGui.QKeyEvent) -> None:  # noqa: N802
        key = event.key()
        ctrl = bool(event.modifiers() & QtCore.Qt.KeyboardModifier.ControlModifier)

        if key in (QtCore.Qt.Key.Key_Return, QtCore.Qt.Key.Key_Enter):
            self.input_unit.emit("\r")
            return
        if key == QtCore.Qt.Key.Key_Backspace:
            self.input_unit.emit("\x7f")
            return
        if ctrl and key == QtCore.Qt.Key.Key_C:
            if self.textCursor().hasSelection():
                self.copy()
            else:
                self.input_unit.emit("\x03")
            return
        if ctrl and key == QtCore.Qt.Key.Key_V:
            self._paste_clipboard()
            return

        text = event.text()
        if text:
            self.input_unit.emit(text)

    def insertFromMimeData(self, source: QtCore.QMimeData) -> None:  # noqa: N802
        if source is not None and source.hasText():
            self.input_unit.emit(source.text())

    def _paste_clipboard(self) -> None:
        text = QtGui.QGuiApplication.clipboard().text()
        if text:
            self.input_unit.emit(text)


class _DisplaySignals(QtCore.QObject):
    write = QtCore.Signal(str)
    clear = QtCore.Signal()
    scroll = QtCore.Signal(bool)  # True: bottom, False: top


class QtDisplay:
    """`Display` backed by a `TerminalView`; safe to call from any thread."""

    def __init__(self, view: TerminalView) -> None:
        self._signals = _DisplaySignals()
        queued = QtCore.Qt.ConnectionType.QueuedConnection
        self._signals.write.connect(view.append_ansi, queued)
        self._signals.clear.connect(view.clear_screen, queued)
        self._signals.scroll.connect(view.scroll_to, queued)

    def write(self, text: str) -> None:
        self._signals.write.emit(str(text))

    def write_line(self, text: str) -> None:
        self._signals.write.emit(str(text) + CRLF)

    def clear_screen(self) -> None:
        self._signals.clear.emit()

    def scroll_to_bottom(self) -> None:
        self._signals.scroll.emit(True)

    def scroll_to_top(self) -> None:
        self._signals.scroll.emit(False)


class _UiBridge(QtCore.QObject):
    cwd_changed = QtCore.Signal(str, str)  # tab_id, cwd


@dataclass
class _TabState:
    tab_id: str
    view: TerminalView
    display: QtDisplay
    engine: TerminalEngine


class TerminalWindow(QtWidgets.QMainWindow):
    def __init__(self, config: TerminalConfig | None = None) -> None:
        # Ensure a QApplication exists *before* constructing any QWidget.
        self._app = QtWidgets.QApplication.instance() or QtWidgets.QApplication([])
        super().__init__()

        self._cfg = config or load_config()
        self._tabs: dict[str, _TabState] = {}
        self._counter = 0
        self._ui_bridge = _UiBridge(self)
        self._ui_bridge.cwd_changed.connect(self._on_cwd_changed, QtCore.Qt.ConnectionType.QueuedConnection)

        if not self._cfg.cursor_blink:
            self._app.setCursorFlashTime(0)

        self._build_ui()
        self._apply_style()

        self.resize(900, 560)
        self.setWindowTitle("Terminal")
        self.new_tab()

    def exec(self) -> int:
        self.show()
        return int(self._app.exec())

    @property
    def tab_count(self) -> int:
        return len(self._tabs)

    def engine_for_index(self, index: int) -> TerminalEngine | None:
        st = self._tab_at(index)
        return st.engine if st is not None else None

    # ---- UI ----

    def _apply_style(self) -> None:
        self.setStyleSheet(_QSS)

    def _build_ui(self) -> None:
        root = QtWidgets.QWidget()
        root.setObjectName("root")
        self.setCentralWidget(root)

        outer = QtWidgets.QVBoxLayout(root)
        outer.setContentsMargins(12, 12, 12, 12)
        outer.setSpacing(8)

        head = QtWidgets.QHBoxLayout()
        title = QtWidgets.QLabel("Terminal")
        title.setObjectName("title")
        head.addWidget(title)
        self._btn_new_tab = QtWidgets.QPushButton("New")
        self._btn_new_tab.setObjectName("btn_ghost")
        head.addWidget(self._btn_new_tab)
        head.addStretch(1)
        self._cwd_label = QtWidgets.QLabel("")
        self._cwd_label.setObjectName("cwd_label")
        head.addWidget(self._cwd_label)
        outer.addLayout(head)

        self._term_tabs = QtWidgets.QTabWidget()
        self._term_tabs.setTabsClosable(True)
        outer.addWidget(self._term_tabs, 1)

        # wiring
        self._btn_new_tab.clicked.connect(lambda: self.new_tab())
        self._term_tabs.currentChanged.connect(self._on_tab_changed)
        self._term_tabs.tabCloseRequested.connect(self._on_tab_close_requested)

    # ---- tabs ----

    def new_tab(self) -> TerminalEngine:
        tab_id = secrets.token_hex(4)
        self._counter += 1

        view = TerminalView(self._cfg)
        view.setProperty("tab_id", tab_id)
        display = QtDisplay(view)
        engine = TerminalEngine(
            display,
            self._cfg,
            on_directory_changed=lambda cwd, tid=tab_id: self._ui_bridge.cwd_changed.emit(tid, cwd),
        )
        view.input_unit.connect(engine.submit_input)

        st = _TabState(tab_id=tab_id, view=view, display=display, engine=engine)
        self._tabs[tab_id] = st

        idx = self._term_tabs.addTab(view, f"Terminal {self._counter}")
        self._term_tabs.setCurrentIndex(idx)
        engine.start()
        view.setFocus()
        return engine

    def _tab_at(self, index: int) -> _TabState | None:
        w = self._term_tabs.widget(index)
        tid = w.property("tab_id") if w is not None else None
        if not isinstance(tid, str):
            return None
        return self._tabs.get(tid)

    def _on_tab_changed(self, index: int) -> None:
        st = self._tab_at(index)
        if st is None:
            return
        self._cwd_label.setText(st.engine.working_directory)
        st.view.setFocus()

    def _on_tab_close_requested(self, index: int) -> None:
        st = self._tab_at(index)
        if st is None:
            return
        st.engine.close()
        self._tabs.pop(st.tab_id, None)
        self._term_tabs.removeTab(index)
        st.view.deleteLater()
        if not self._tabs:
            self.new_tab()

    def _on_cwd_changed(self, tab_id: str, cwd: str) -> None:
        cur = self._tab_at(self._term_tabs.currentIndex())
        if cur is not None and cur.tab_id == tab_id:
            self._cwd_label.setText(cwd)

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:  # noqa: N802
        for st in list(self._tabs.values()):
            st.engine.close()
        super().closeEvent(event)
