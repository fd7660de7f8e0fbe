"""Exercises: loading, compiling, running and checking their progress marker."""

from __future__ import annotations

import enum
import os
import re
import subprocess
import threading
import tomllib
import weakref
from dataclasses import dataclass
from pathlib import Path

from drillrunner import ui

RUSTC_COLOR_ARGS = ("--color", "always")
RUSTC_EDITION_ARGS = ("--edition", "2021")
I_AM_DONE_REGEX = re.compile(r"^\s*///?\s*I\s+AM\s+NOT\s+DONE", re.MULTILINE)
CONTEXT = 2
CLIPPY_CARGO_TOML_PATH = "./exercises/clippy/Cargo.toml"
BUILD_SCRIPT_CARGO_TOML_PATH = "./exercises/tests/Cargo.toml"


def temp_file() -> str:
    """Return a temporary binary name unique to this process and thread."""
    return f"./temp_{os.getpid()}_ThreadId{threading.get_ident()}"


def _remove(path: str) -> None:
    try:
        os.remove(path)
    except OSError:
        pass


def clean() -> None:
    """Remove the temporary binary, ignoring errors."""
    _remove(temp_file())


class Mode(enum.Enum):
    """How an exercise is checked."""

    COMPILE = "compile"
    TEST = "test"
    CLIPPY = "clippy"
    BUILD_SCRIPT = "buildscript"


@dataclass(frozen=True)
class ContextLine:
    """A source line shown around the progress marker."""

    line: str
    number: int
    important: bool


@dataclass(frozen=True)
class ExerciseOutput:
    """Captured output of a finished command."""

    stdout: str
    stderr: str


class CompilationFailed(Exception):
    """Raised when an exercise fails to compile."""

    def __init__(self, output: ExerciseOutput) -> None:
        super().__init__(output.stderr)
        self.output = output


class ExecutionFailed(Exception):
    """Raised when a compiled exercise exits unsuccessfully."""

    def __init__(self, output: ExerciseOutput) -> None:
        super().__init__(output.stderr)
        self.output = output


class CompiledExercise:
    """A compiled exercise; its temporary binary is removed on close."""

    def __init__(self, exercise: Exercise) -> None:
        self.exercise = exercise
        self._finalizer = weakref.finalize(self, _remove, temp_file())

    def run(self) -> ExerciseOutput:
        return self.exercise.run()

    def close(self) -> None:
        self._finalizer()

    def __enter__(self) -> CompiledExercise:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _capture(args: list[str]) -> subprocess.CompletedProcess:
    return subprocess.run(args, capture_output=True, check=False)


def _output(result: subprocess.CompletedProcess) -> ExerciseOutput:
    return ExerciseOutput(
        stdout=(result.stdout or b"").decode("utf-8", errors="replace"),
        stderr=(result.stderr or b"").decode("utf-8", errors="replace"),
    )


def _lines(source: str) -> list[str]:
    lines = source.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


@dataclass
class Exercise:
    """One exercise as described in the exercise list."""

    name: str
    path: Path
    mode: Mode
    hint: str

    def __post_init__(self) -> None:
        self.path = Path(self.path)
        self.mode = Mode(self.mode)

    def _write_manifest(self, manifest: str) -> None:
        content = (
            "[package]\n"
            f'name = "{self.name}"\n'
            'version = "0.0.1"\n'
            'edition = "2021"\n'
            "[[bin]]\n"
            f'name = "{self.name}"\n'
            f'path = "{self.name}.rs"'
        )
        message = (
            "Failed to write Clippy Cargo.toml file."
            if ui.no_emoji()
            else "Failed to write 📎 Clippy 📎 Cargo.toml file."
        )
        try:
            Path(manifest).write_text(content, encoding="utf-8")
        except OSError as error:
            raise OSError(message) from error

    def compile(self) -> CompiledExercise:
        """Build the exercise; raise CompilationFailed on failure."""
        source = str(self.path)
        target = temp_file()
        rustc = ["rustc", source, "-o", target, *RUSTC_COLOR_ARGS, *RUSTC_EDITION_ARGS]
        match self.mode:
            case Mode.COMPILE:
                result = _capture(rustc)
            case Mode.TEST:
                result = _capture(
                    ["rustc", "--test", source, "-o", target,
                     *RUSTC_COLOR_ARGS, *RUSTC_EDITION_ARGS]
                )
            case Mode.CLIPPY:
                self._write_manifest(CLIPPY_CARGO_TOML_PATH)
                # Build a runnable binary too; clippy reports any compile error.
                _capture(rustc)
                _capture(
                    ["cargo", "clean", "--manifest-path", CLIPPY_CARGO_TOML_PATH,
                     *RUSTC_COLOR_ARGS]
                )
                result = _capture(
                    ["cargo", "clippy", "--manifest-path", CLIPPY_CARGO_TOML_PATH,
                     *RUSTC_COLOR_ARGS,
                     "--", "-D", "warnings", "-D", "clippy::float_cmp"]
                )
            case Mode.BUILD_SCRIPT:
                self._write_manifest(BUILD_SCRIPT_CARGO_TOML_PATH)
                result = _capture(
                    ["cargo", "test", "--manifest-path", BUILD_SCRIPT_CARGO_TOML_PATH]
                )

        if result.returncode == 0:
            return CompiledExercise(self)
        clean()
        raise CompilationFailed(_output(result))

    def run(self) -> ExerciseOutput:
        """Run the compiled binary; raise ExecutionFailed on a non-zero exit."""
        match self.mode:
            case Mode.TEST:
                arg = "--show-output"
            case Mode.BUILD_SCRIPT:
                return ExerciseOutput(stdout="", stderr="")
            case _:
                arg = ""
        result = _capture([temp_file(), arg])
        output = _output(result)
        if result.returncode != 0:
            raise ExecutionFailed(output)
        return output

    def state(self) -> list[ContextLine]:
        """Return the lines around the progress marker; empty when done."""
        source = self.path.read_text(encoding="utf-8")
        if not I_AM_DONE_REGEX.search(source):
            return []

        lines = _lines(source)
        matched = next(
            (i for i, line in enumerate(lines) if I_AM_DONE_REGEX.search(line)), None
        )
        if matched is None:
            raise ValueError(f"progress marker in {self.path} spans several lines")

        low = max(matched - CONTEXT, 0)
        high = matched + CONTEXT
        return [
            ContextLine(line=line, number=i + 1, important=i == matched)
            for i, line in enumerate(lines)
            if low <= i <= high
        ]

    def looks_done(self) -> bool:
        """Whether the progress marker has been removed."""
        return not self.state()

    def __str__(self) -> str:
        return str(self.path)


def load_exercises(path: str | os.PathLike = "info.toml") -> list[Exercise]:
    """Read the exercise list from a TOML file."""
    with open(path, "rb") as handle:
        data = tomllib.load(handle)
    try:
        return [
            Exercise(name=entry["name"], path=entry["path"],
                     mode=Mode(entry["mode"]), hint=entry["hint"])
            for entry in data["exercises"]
        ]
    except KeyError as error:
        raise ValueError(f"missing field {error} in {path}") from error