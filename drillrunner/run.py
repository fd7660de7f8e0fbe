"""Running a single exercise and resetting it."""

from __future__ import annotations

import subprocess
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from rich.console import Console

from drillrunner import ui
from drillrunner.exercise import CompilationFailed, ExecutionFailed, Exercise, Mode
from drillrunner.verify import VerificationFailed, test


class RunFailed(Exception):
    """Raised when an exercise cannot be run or reset."""

    def __init__(self, exercise: Exercise) -> None:
        super().__init__(f"{exercise} failed")
        self.exercise = exercise


@contextmanager
def _spinner(message: str) -> Iterator[Callable[[str], None]]:
    console = Console(highlight=False, soft_wrap=True)
    if not console.is_terminal:
        yield lambda _text: None
        return
    with console.status(message) as status:
        yield lambda text: status.update(text)


def run(exercise: Exercise, verbose: bool = False) -> None:
    """Build and run one exercise, showing its output; raise RunFailed on failure."""
    match exercise.mode:
        case Mode.TEST | Mode.BUILD_SCRIPT:
            try:
                test(exercise, verbose)
            except VerificationFailed as failure:
                raise RunFailed(exercise) from failure
        case Mode.COMPILE | Mode.CLIPPY:
            _compile_and_run(exercise)


def reset(exercise: Exercise) -> subprocess.Popen:
    """Start stashing the changes made to the exercise file."""
    try:
        return subprocess.Popen(["git", "stash", "--", str(exercise.path)])
    except OSError as error:
        raise RunFailed(exercise) from error


def _compile_and_run(exercise: Exercise) -> None:
    with _spinner(f"Compiling {exercise}...") as update:
        try:
            compiled = exercise.compile()
        except CompilationFailed as failure:
            ui.warn(f"Compilation of {exercise} failed!, Compiler error message:\n")
            print(failure.output.stderr)
            raise RunFailed(exercise) from failure

        with compiled:
            update(f"Running {exercise}...")
            try:
                output = compiled.run()
            except ExecutionFailed as failure:
                print(failure.output.stdout)
                print(failure.output.stderr)
                ui.warn(f"Ran {exercise} with errors")
                raise RunFailed(exercise) from failure

    print(output.stdout)
    ui.success(f"Successfully ran {exercise}")