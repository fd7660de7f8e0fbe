"""Checking exercises in order and reporting progress to the user."""

from __future__ import annotations

import enum
import math
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager

from rich.console import Console
from rich.text import Text

from drillrunner import ui
from drillrunner.exercise import (
    CompilationFailed,
    CompiledExercise,
    ExecutionFailed,
    Exercise,
    Mode,
)

BAR_WIDTH = 60
SEPARATOR = "===================="

_SUCCESS_TEMPLATES = {
    Mode.COMPILE: "Successfully ran {}!",
    Mode.TEST: "Successfully tested {}!",
    Mode.CLIPPY: "Successfully compiled {}!",
    Mode.BUILD_SCRIPT: "Successfully compiled {}!",
}


class RunMode(enum.Enum):
    """Whether a passing exercise should prompt the user to move on."""

    INTERACTIVE = enum.auto()
    NON_INTERACTIVE = enum.auto()


class VerificationFailed(Exception):
    """Raised when an exercise fails to build, fails to run or is still pending."""

    def __init__(self, exercise: Exercise) -> None:
        super().__init__(f"{exercise} did not pass")
        self.exercise = exercise


def _console() -> Console:
    return Console(highlight=False, soft_wrap=True)


@contextmanager
def _spinner(message: str) -> Iterator[Callable[[str], None]]:
    """Show a spinner on a terminal; yield a function that changes its text."""
    console = _console()
    if not console.is_terminal:
        yield lambda _text: None
        return
    with console.status(message) as status:
        yield lambda text: status.update(text)


class _ProgressBar:
    """A one-line progress bar of finished exercises."""

    def __init__(self, position: int, total: int) -> None:
        self.position = position
        self.total = total

    def _bar(self) -> Text:
        fraction = min(self.position / self.total, 1.0) if self.total else 1.0
        filled = int(fraction * BAR_WIDTH)
        if filled >= BAR_WIDTH:
            return Text("#" * BAR_WIDTH, style="green")
        return Text.assemble(
            ("#" * filled + ">", "green"), ("-" * (BAR_WIDTH - filled - 1), "red")
        )

    def show(self, message: str) -> None:
        _console().print(
            Text.assemble(
                "Progress: [",
                self._bar(),
                f"] {self.position}/{self.total} {message}",
            )
        )

    def advance(self, message: str) -> None:
        self.position += 1
        self.show(message)


def _compile(exercise: Exercise) -> CompiledExercise:
    try:
        return exercise.compile()
    except CompilationFailed as failure:
        ui.warn(f"Compiling of {exercise} failed! Please try again. Here's the output:")
        print(failure.output.stderr)
        raise VerificationFailed(exercise) from failure


def _compile_only(exercise: Exercise, success_hints: bool) -> bool:
    with _spinner(f"Compiling {exercise}..."):
        with _compile(exercise):
            pass
    return prompt_for_completion(exercise, None, success_hints)


def _compile_and_run_interactively(exercise: Exercise, success_hints: bool) -> bool:
    with _spinner(f"Compiling {exercise}...") as update:
        with _compile(exercise) as compiled:
            update(f"Running {exercise}...")
            try:
                output = compiled.run()
            except ExecutionFailed as failure:
                ui.warn(f"Ran {exercise} with errors")
                print(failure.output.stdout)
                print(failure.output.stderr)
                raise VerificationFailed(exercise) from failure
    return prompt_for_completion(exercise, output.stdout, success_hints)


def _compile_and_test(
    exercise: Exercise, run_mode: RunMode, verbose: bool, success_hints: bool
) -> bool:
    with _spinner(f"Testing {exercise}..."):
        with _compile(exercise) as compiled:
            try:
                output = compiled.run()
            except ExecutionFailed as failure:
                ui.warn(
                    f"Testing of {exercise} failed! Please try again. Here's the output:"
                )
                print(failure.output.stdout)
                raise VerificationFailed(exercise) from failure
    if verbose:
        print(output.stdout)
    if run_mode is RunMode.INTERACTIVE:
        return prompt_for_completion(exercise, None, success_hints)
    return True


def verify(
    exercises: Iterable[Exercise],
    progress: tuple[int, int],
    verbose: bool = False,
    success_hints: bool = False,
) -> None:
    """Check exercises in order; raise VerificationFailed at the first that does not pass."""
    num_done, total = progress
    percentage = num_done / total * 100.0 if total else math.nan
    bar = _ProgressBar(num_done, total)
    bar.show(f"({percentage:.1f} %)")

    for exercise in exercises:
        match exercise.mode:
            case Mode.TEST | Mode.BUILD_SCRIPT:
                passed = _compile_and_test(
                    exercise, RunMode.INTERACTIVE, verbose, success_hints
                )
            case Mode.COMPILE:
                passed = _compile_and_run_interactively(exercise, success_hints)
            case Mode.CLIPPY:
                passed = _compile_only(exercise, success_hints)
        if not passed:
            raise VerificationFailed(exercise)
        percentage += 100.0 / total if total else math.nan
        bar.advance(f"({percentage:.1f} %)")


def test(exercise: Exercise, verbose: bool = False) -> None:
    """Build and run an exercise's tests without prompting; raise VerificationFailed on failure."""
    _compile_and_test(exercise, RunMode.NON_INTERACTIVE, verbose, False)


def prompt_for_completion(
    exercise: Exercise, prompt_output: str | None, success_hints: bool
) -> bool:
    """Return True if the exercise is done; otherwise show where its marker is and return False."""
    context = exercise.state()
    if not context:
        return True

    ui.success(_SUCCESS_TEMPLATES[exercise.mode].format(exercise))

    no_emoji = ui.no_emoji()
    clippy_message = (
        "The code is compiling, and Clippy is happy!"
        if no_emoji
        else "The code is compiling, and 📎 Clippy 📎 is happy!"
    )
    success_message = {
        Mode.COMPILE: "The code is compiling!",
        Mode.TEST: "The code is compiling, and the tests pass!",
        Mode.CLIPPY: clippy_message,
        Mode.BUILD_SCRIPT: "Build script works!",
    }[exercise.mode]

    console = _console()
    separator = Text(SEPARATOR, style="bold")

    print()
    if no_emoji:
        print(f"~*~ {success_message} ~*~")
    else:
        print(f"🎉 🎉  {success_message} 🎉 🎉")
    print()

    if prompt_output is not None:
        print("Output:")
        console.print(separator)
        print(prompt_output)
        console.print(separator)
        print()
    if success_hints:
        print("Hints:")
        console.print(separator)
        print(exercise.hint)
        console.print(separator)
        print()

    print("You can keep working on this exercise,")
    console.print(
        Text.assemble(
            "or jump into the next one by removing the ",
            ("`I AM NOT DONE`", "bold"),
            " comment:",
        )
    )
    print()
    for context_line in context:
        line = (
            Text(context_line.line, style="bold")
            if context_line.important
            else Text(context_line.line)
        )
        console.print(
            Text.assemble(
                (f"{context_line.number:>2}", "bold blue"),
                " ",
                ("|", "blue"),
                "  ",
                line,
            )
        )

    return False