"""Watch mode: re-verify exercises whenever an exercise file changes."""

from __future__ import annotations

import enum
import errno
import itertools
import os
import queue
import subprocess
import sys
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from drillrunner.exercise import Exercise
from drillrunner.verify import VerificationFailed, verify

EXERCISES_DIR = "./exercises"
POLL_SECONDS = 1.0

_HELP = """Commands available to you in watch mode:
  hint   - prints the current exercise's hint
  clear  - clears the screen
  quit   - quits watch mode
  !<cmd> - executes a command, like `!rustc --explain E0381`
  help   - displays this help message

Watch mode automatically re-evaluates the current exercise
when you edit a file's contents."""


class WatchStatus(enum.Enum):
    """How watch mode ended."""

    FINISHED = enum.auto()
    UNFINISHED = enum.auto()


@dataclass
class _ShellState:
    """Shared between the watcher and the interactive shell."""

    hint: str | None = None
    should_quit: threading.Event = field(default_factory=threading.Event)


def handle_shell_command(command: str, state) -> None:
    """Act on one line typed in watch mode.

    ``state`` needs a ``hint`` attribute (text or None) and a
    ``should_quit`` event.
    """
    text = command.strip()
    if text == "hint":
        if state.hint is not None:
            print(state.hint)
    elif text == "clear":
        print("\x1B[2J\x1B[1;1H")
    elif text == "quit":
        state.should_quit.set()
        print("Bye!")
    elif text == "help":
        print(_HELP)
    elif text.startswith("!"):
        cmd = text[1:]
        parts = cmd.split()
        if not parts:
            print("no command provided")
            return
        try:
            subprocess.run(parts, check=False)
        except OSError as error:
            print(f"failed to execute command `{cmd}`: {error}")
    else:
        print(f"unknown command: {text}")


def _shell_loop(state) -> None:
    while True:
        try:
            line = sys.stdin.readline()
        except (OSError, ValueError) as error:
            print(f"error reading command: {error}")
            return
        if not line:
            return
        handle_shell_command(line, state)


def spawn_watch_shell(state) -> threading.Thread:
    """Start a background thread that reads watch-mode commands from stdin."""
    print(
        "Welcome to watch mode! You can type 'help' to get an overview "
        "of the commands you can use here."
    )
    thread = threading.Thread(target=_shell_loop, args=(state,), daemon=True)
    thread.start()
    return thread


class _Forwarder(FileSystemEventHandler):
    def __init__(self, events: queue.Queue[str]) -> None:
        super().__init__()
        self._events = events

    def _forward(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._events.put(os.fsdecode(event.src_path))

    def on_created(self, event: FileSystemEvent) -> None:
        self._forward(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._forward(event)


def _drain(events: queue.Queue[str], timeout: float) -> list[str]:
    """Wait for a change, then collect everything queued so far, without repeats."""
    try:
        first = events.get(timeout=timeout)
    except queue.Empty:
        return []
    collected = [first]
    while True:
        try:
            collected.append(events.get_nowait())
        except queue.Empty:
            break
    return list(dict.fromkeys(collected))


def _ends_with(filepath: Path, relative: Path) -> bool:
    tail = Path(relative).parts
    return bool(tail) and filepath.parts[-len(tail):] == tail


def _clear_screen() -> None:
    print("\x1Bc")


def _recheck(
    changed: str,
    exercises: list[Exercise],
    verbose: bool,
    success_hints: bool,
    state: _ShellState,
) -> bool:
    """Verify after a change; return True once every exercise passes."""
    path = Path(changed)
    if path.suffix != ".rs" or not path.exists():
        return False
    filepath = path.resolve()
    current = next((e for e in exercises if _ends_with(filepath, e.path)), None)
    pending: Iterator[Exercise] = itertools.chain(
        [current] if current is not None else [],
        (
            e
            for e in exercises
            if not e.looks_done() and not _ends_with(filepath, e.path)
        ),
    )
    num_done = sum(1 for e in exercises if e.looks_done())
    _clear_screen()
    try:
        verify(pending, (num_done, len(exercises)), verbose, success_hints)
    except VerificationFailed as failure:
        state.hint = failure.exercise.hint
        return False
    return True


def watch(
    exercises: Iterable[Exercise], verbose: bool = False, success_hints: bool = False
) -> WatchStatus:
    """Verify all exercises, then keep re-verifying as files change."""
    exercises = list(exercises)
    root = Path(EXERCISES_DIR)
    if not root.is_dir():
        raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(root))

    events: queue.Queue[str] = queue.Queue()
    observer = Observer()
    observer.schedule(_Forwarder(events), str(root), recursive=True)
    observer.start()
    try:
        _clear_screen()
        try:
            verify(exercises, (0, len(exercises)), verbose, success_hints)
        except VerificationFailed as failure:
            state = _ShellState(hint=failure.exercise.hint)
        else:
            return WatchStatus.FINISHED

        spawn_watch_shell(state)
        while True:
            for changed in _drain(events, POLL_SECONDS):
                if _recheck(changed, exercises, verbose, success_hints, state):
                    return WatchStatus.FINISHED
            if state.should_quit.is_set():
                return WatchStatus.UNFINISHED
    finally:
        observer.stop()
        observer.join()