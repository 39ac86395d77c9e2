# swapface/app/main.py
from __future__ import annotations
import argparse
import logging
import os
import sys
import threading
from typing import Any, Dict, List, Optional

from ..adapters.settings_file import SettingsFile
from ..domain.entities import WorkflowSnapshot, WorkflowState
from ..usecases.workflow_orchestrator import WorkflowHooks
from ..utils import logging as logging_utils
from ..viewmodels.settings_vm import SettingsVM
from ..viewmodels.workflow_vm import WorkflowVM
from .controller import AppController
from .event_loop import EventLoop

log = logging.getLogger(__name__)

HELP_TEXT = (
    "Commands: pick <n> | capture | confirm | cancel | unpick <position> | "
    "ack | restart | status | help | quit"
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="swapface", description="Console face-swap workflow.")
    parser.add_argument("--settings", help="JSON settings file (flat keys).")
    parser.add_argument("--api-base-url", dest="api_base_url", help="Swap service base URL.")
    parser.add_argument("--camera-index", dest="camera_index", type=int)
    parser.add_argument("--fps", type=float)
    parser.add_argument("--classifier-url", dest="classifier_url")
    parser.add_argument("--result-dir", dest="result_dir", help="Write each swap result here.")
    parser.add_argument("--offline", action="store_true", help="Use the built-in mock service.")
    parser.add_argument("--debug", action="store_true", help="Enable DEBUG logging.")
    return parser


def load_settings(args: argparse.Namespace) -> SettingsVM:
    """Defaults, then the JSON file, then command-line flags."""
    vm = SettingsVM()
    if args.settings:
        vm.apply_dict(SettingsFile(args.settings).load(required=True))
    overrides: Dict[str, Any] = {
        key: getattr(args, key)
        for key in ("api_base_url", "camera_index", "fps", "classifier_url")
        if getattr(args, key) is not None
    }
    if args.debug:
        overrides["debug_logging"] = True
    if overrides:
        vm.apply_dict(overrides)
    return vm


class ConsolePresenter:
    """Prints view updates and turns typed commands into workflow intents."""

    def __init__(self, app: AppController, vm: WorkflowVM, *, result_dir: Optional[str] = None) -> None:
        self.app = app
        self.vm = vm
        self.result_dir = result_dir
        self._last_line = ""
        self._results_written = 0

    # ---- Output ----
    def on_snapshot(self, snapshot: WorkflowSnapshot) -> None:
        view = self.vm.apply_snapshot(snapshot)
        line = self._render(view)
        if line != self._last_line:
            print(line, flush=True)
            self._last_line = line
        if snapshot.state is WorkflowState.SHOWING_RESULT and snapshot.result_handle is not None:
            self._write_result(snapshot)

    def on_terminated(self, snapshot: WorkflowSnapshot) -> None:
        print("Workflow stopped. Type 'quit' to exit.", flush=True)

    @staticmethod
    def _render(view: Dict[str, Any]) -> str:
        parts = [f"[{view['state']}] {view['headline']}"]
        if view["selected"]:
            parts.append(f"picked={view['selected']}")
        if view["selectable"]:
            parts.append(f"choose from 1..{view['catalog_size']}")
        if view["can_capture"]:
            parts.append("type 'capture'")
        return "  ".join(parts)

    def _write_result(self, snapshot: WorkflowSnapshot) -> None:
        handle = snapshot.result_handle
        if not self.result_dir or handle is None or handle.released:
            return
        os.makedirs(self.result_dir, exist_ok=True)
        self._results_written += 1
        ext = ".png" if "png" in handle.content_type else ".jpg"
        path = os.path.join(self.result_dir, f"result_{self._results_written:03d}{ext}")
        with open(path, "wb") as f:
            f.write(handle.data)
        print(f"Result saved to {path}", flush=True)

    # ---- Input ----
    def handle_command(self, line: str) -> bool:
        """Apply one command on the loop thread; returns False to quit."""
        words: List[str] = line.strip().split()
        if not words:
            return True
        cmd, args = words[0].lower(), words[1:]
        orch = self.app.ensure_ready()
        try:
            if cmd in ("quit", "exit", "q"):
                return False
            if cmd == "pick" and args:
                orch.pick_image(int(args[0]))
            elif cmd == "capture":
                orch.capture_frame()
            elif cmd == "confirm":
                orch.confirm_capture()
            elif cmd == "cancel":
                orch.cancel_capture()
            elif cmd == "unpick" and args:
                orch.remove_selection(int(args[0]) - 1)
            elif cmd == "ack":
                orch.acknowledge_error()
            elif cmd == "restart":
                orch.restart()
            elif cmd == "status":
                print(self._render(self.vm.apply_snapshot(orch.snapshot())), flush=True)
            else:
                print(HELP_TEXT, flush=True)
        except ValueError:
            print(HELP_TEXT, flush=True)
        return True


def _read_stdin(loop: EventLoop, presenter: ConsolePresenter) -> None:
    def _apply(text: str) -> None:
        if not presenter.handle_command(text):
            loop.stop()

    for line in sys.stdin:
        loop.post(lambda text=line: _apply(text))
    loop.post(loop.stop)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging_utils.configure_root()
    try:
        settings = load_settings(args)
    except (OSError, ValueError) as exc:
        print(f"Invalid settings: {exc}", file=sys.stderr)
        return 2
    level = logging_utils.apply_preferences(settings.debug_logging)
    log.debug("Log level %s", logging_utils.level_name(level))

    loop = EventLoop()
    vm = WorkflowVM(require_single_face=settings.require_single_face)
    hooks = WorkflowHooks()
    app = AppController(settings, loop, offline=args.offline, hooks=hooks)
    presenter = ConsolePresenter(app, vm, result_dir=args.result_dir)
    hooks.on_snapshot = presenter.on_snapshot
    hooks.on_terminated = presenter.on_terminated

    orchestrator = app.ensure_ready()
    print(HELP_TEXT, flush=True)
    reader = threading.Thread(target=_read_stdin, args=(loop, presenter), name="stdin", daemon=True)
    loop.post(orchestrator.start)
    reader.start()
    try:
        loop.run()
    except KeyboardInterrupt:
        log.info("Interrupted")
    finally:
        app.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
