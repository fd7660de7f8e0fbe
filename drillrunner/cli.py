"""Command line entry point."""

from __future__ import annotations

import argparse
import json
import math
import subprocess
import sys
import threading
import time
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import TextIO

from drillrunner import ui
from drillrunner.exercise import Exercise, load_exercises
from drillrunner.project import RustAnalyzerProject
from drillrunner.run import RunFailed, reset, run
from drillrunner.verify import VerificationFailed, verify
from drillrunner.watch import WatchStatus, watch

VERSION = "5.5.1"
INFO_FILE = "info.toml"
CHECK_RESULT_PATH = ".github/result/check_result.json"

WELCOME = """       welcome to...
  ___  ____  ___ _    _    ____  _  _ _  _ _  _ ____ ____
  |  \\ |__/   |  |    |    |__/  |  | |\\ | |\\ | |___ |__/
  |__/ |  \\  _|_ |___ |___ |  \\  |__| | \\| | \\| |___ |  \\"""

DEFAULT_OUT = """Thanks for installing drillrunner!

Is this your first time? Don't worry, these exercises are made for beginners!
Here's a couple of notes about how it all works:

1. The central concept is that you solve exercises. These exercises usually
   have some sort of syntax error in them, which will cause them to fail
   compilation or testing. Sometimes there's a logic error instead of a syntax
   error. No matter what error, it's your job to find it and fix it! You'll
   know when you fixed it because then, the exercise will compile and you can
   move on to the next exercise.
2. If you run in watch mode (which we recommend), it'll automatically start
   with the first exercise. Don't get confused by an error message popping up
   as soon as you start! This is part of the exercise that you're supposed to
   solve, so open the exercise file in an editor and start your detective work!
3. If you're stuck on an exercise, there is a helpful hint you can view by
   typing 'hint' (in watch mode), or running `drillrunner hint exercise_name`.
4. If you want to use `rust-analyzer` with exercises, which provides features
   like autocompletion, run the command `drillrunner lsp`.

Got all that? Great! To get started, run `drillrunner watch` in order to get
the first exercise. Make sure to have your editor open!"""

FINISH_LINE = """+----------------------------------------------------+
|            You made it to the finish line!         |
+----------------------------------------------------+

We hope you enjoyed learning about the various aspects of Rust!
If you noticed any issues, please don't hesitate to report them.
You can also contribute your own exercises to help the greater community!"""


@dataclass
class ExerciseResult:
    """Whether one exercise passed."""

    name: str
    result: bool


@dataclass
class ExerciseStatistics:
    """Totals of a grading run."""

    total_exercations: int = 0
    total_succeeds: int = 0
    total_failures: int = 0
    total_time: int = 0


@dataclass
class ExerciseCheckList:
    """The report written by the grading run."""

    exercises: list[ExerciseResult] = field(default_factory=list)
    user_name: str | None = None
    statistics: ExerciseStatistics = field(default_factory=ExerciseStatistics)

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2, ensure_ascii=False)


class ExerciseNotFound(LookupError):
    """Raised when no exercise matches the requested name."""


class _UsageError(Exception):
    pass


class _Parser(argparse.ArgumentParser):
    def error(self, message: str):
        prefix = "the following arguments are required: "
        if message.startswith(prefix):
            missing = message[len(prefix):].replace(", ", "\n    ")
            message = f"Required positional arguments not provided:\n    {missing}"
        raise _UsageError(message)


def rustc_exists() -> bool:
    """Whether `rustc --version` can be run successfully."""
    try:
        result = subprocess.run(
            ["rustc", "--version"], stdout=subprocess.DEVNULL, check=False
        )
    except OSError:
        return False
    return result.returncode == 0


def find_exercise(name: str, exercises: Iterable[Exercise]) -> Exercise:
    """Find an exercise by name; "next" means the first one not yet done."""
    if name == "next":
        found = next((e for e in exercises if not e.looks_done()), None)
        if found is None:
            raise ExerciseNotFound(
                "🎉 Congratulations! You have done all the exercises!\n"
                "🔚 There are no more exercises to do next!"
            )
        return found
    found = next((e for e in exercises if e.name == name), None)
    if found is None:
        raise ExerciseNotFound(f"No exercise found for '{name}'!")
    return found


def list_exercises(
    exercises: Iterable[Exercise],
    paths: bool = False,
    names: bool = False,
    filter: str | None = None,
    unsolved: bool = False,
    solved: bool = False,
    out: TextIO | None = None,
) -> int:
    """Write the exercise table and a progress line; return the number done."""
    out = sys.stdout if out is None else out
    exercises = list(exercises)
    if not paths and not names:
        out.write(f"{'Name':<17}\t{'Path':<46}\t{'Status':<7}\n")

    patterns = [p for p in (filter or "").lower().split(",") if p.strip()]
    done_count = 0
    for exercise in exercises:
        fname = str(exercise.path)
        matches = any(p in exercise.name or p in fname for p in patterns)
        done = exercise.looks_done()
        if done:
            done_count += 1
        status = "Done" if done else "Pending"
        wanted = (
            (done and solved) or (not done and unsolved) or (not solved and not unsolved)
        )
        if wanted and (matches or filter is None):
            if paths:
                line = fname
            elif names:
                line = exercise.name
            else:
                line = f"{exercise.name:<17}\t{fname:<46}\t{status:<7}"
            out.write(line + "\n")
            out.flush()

    percentage = done_count / len(exercises) * 100.0 if exercises else math.nan
    out.write(
        f"Progress: You completed {done_count} / {len(exercises)} exercises "
        f"({percentage:.1f} %).\n"
    )
    return done_count


def cicv_verify(
    exercises: Iterable[Exercise],
    verbose: bool = False,
    output_path: str = CHECK_RESULT_PATH,
) -> ExerciseCheckList:
    """Run every exercise concurrently and write a JSON grading report."""
    exercises = list(exercises)
    started = int(time.time())
    total = len(exercises)
    check_list = ExerciseCheckList(statistics=ExerciseStatistics(total_exercations=total))
    lock = threading.Lock()

    def check(exercise: Exercise, task_started: int) -> None:
        try:
            run(exercise, True)
            passed = True
        except RunFailed:
            passed = False
        with lock:
            stats = check_list.statistics
            if passed:
                stats.total_succeeds += 1
                print(f"{exercise.name}执行成功")
            else:
                print(f"{exercise.name}执行失败")
            print(f"总的题目数: {total}")
            print(f"当前做正确的题目数: {stats.total_succeeds}")
            print(f"当前修改试卷耗时: {int(time.time()) - task_started} s")
            check_list.exercises.append(ExerciseResult(name=exercise.name, result=passed))
            if not passed:
                stats.total_failures += 1

    with ThreadPoolExecutor() as pool:
        futures = [pool.submit(check, e, int(time.time())) for e in exercises]
        for future in futures:
            future.result()

    total_time = int(time.time()) - started
    print(
        "===============================试卷批改完成,总耗时: "
        f"{total_time} s; =================================="
    )
    check_list.statistics.total_time = total_time
    Path(output_path).write_text(check_list.to_json(), encoding="utf-8")
    return check_list


def _build_parser() -> _Parser:
    parser = _Parser(
        prog="drillrunner",
        description="Small exercises to get you used to writing and reading Rust code",
    )
    parser.add_argument(
        "--nocapture", action="store_true", help="show outputs from the test exercises"
    )
    parser.add_argument(
        "-v", "--version", action="store_true", help="show the executable version"
    )
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("verify", help="Verifies all exercises according to the recommended order")
    watch_parser = sub.add_parser("watch", help="Reruns `verify` when files were edited")
    watch_parser.add_argument(
        "--success-hints", action="store_true", help="show hints on success"
    )
    for name, text in (
        ("run", "Runs/Tests a single exercise"),
        ("reset", 'Resets a single exercise using "git stash -- <filename>"'),
        ("hint", "Returns a hint for the given exercise"),
    ):
        command = sub.add_parser(name, help=text)
        command.add_argument("name", help="the name of the exercise")
    list_parser = sub.add_parser("list", help="Lists the available exercises")
    list_parser.add_argument(
        "-p", "--paths", action="store_true", help="show only the paths of the exercises"
    )
    list_parser.add_argument(
        "-n", "--names", action="store_true", help="show only the names of the exercises"
    )
    list_parser.add_argument(
        "-f", "--filter",
        help="a string to match exercise names; comma separated patterns are acceptable",
    )
    list_parser.add_argument(
        "-u", "--unsolved", action="store_true", help="display only exercises not yet solved"
    )
    list_parser.add_argument(
        "-s", "--solved", action="store_true",
        help="display only exercises that have been solved",
    )
    sub.add_parser("lsp", help="Enable rust-analyzer for exercises")
    sub.add_parser("cicvverify", help="cicvverify")
    return parser


def _lsp() -> int:
    project = RustAnalyzerProject()
    try:
        project.get_sysroot_src()
    except OSError:
        print("Couldn't find toolchain path, do you have `rustc` installed?")
        return 1
    project.exercises_to_json()
    if not project.crates:
        print("Failed find any exercises, make sure you're in the exercises folder")
        return 0
    try:
        project.write_to_disk()
    except OSError:
        print("Failed to write rust-project.json to disk for rust-analyzer")
        return 0
    print("Successfully generated rust-project.json")
    print("rust-analyzer will now parse exercises, restart your language server or editor")
    return 0


def _watch(exercises: list[Exercise], verbose: bool, success_hints: bool) -> int:
    try:
        status = watch(exercises, verbose, success_hints)
    except OSError as error:
        print(f"Error: Could not watch your progress. Error message was {error!r}.")
        print(
            "Most likely you've run out of disk space or your 'inotify limit' "
            "has been reached."
        )
        return 1
    if status is WatchStatus.FINISHED:
        emoji = "★" if ui.no_emoji() else "🎉"
        print(f"{emoji} All exercises completed! {emoji}")
        print(f"\n{FINISH_LINE}\n")
    else:
        print("We hope you're enjoying learning about Rust!")
        print(
            "If you want to continue working on the exercises at a later point, "
            "you can simply run `drillrunner watch` again"
        )
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the command line; return the exit status."""
    try:
        args = _build_parser().parse_args(argv)
    except _UsageError as error:
        print(error, file=sys.stderr)
        return 1

    if args.version:
        print(f"v{VERSION}")
        return 0

    if args.command is None:
        print(f"\n{WELCOME}\n")

    if not Path(INFO_FILE).exists():
        print(f"{sys.argv[0]} must be run from the exercises directory")
        print(f"Try `cd` into the directory that holds {INFO_FILE}!")
        return 1

    if not rustc_exists():
        print("We cannot find `rustc`.")
        print("Try running `rustc --version` to diagnose your problem.")
        print("For instructions on how to install Rust, check the README.")
        return 1

    exercises = load_exercises(INFO_FILE)
    verbose = args.nocapture

    match args.command:
        case None:
            print(f"{DEFAULT_OUT}\n")
        case "list":
            try:
                list_exercises(
                    exercises, args.paths, args.names, args.filter,
                    args.unsolved, args.solved,
                )
            except BrokenPipeError:
                return 0
            except OSError:
                return 1
        case "run" | "reset" | "hint":
            try:
                exercise = find_exercise(args.name, exercises)
            except ExerciseNotFound as error:
                print(error)
                return 1
            if args.command == "hint":
                print(exercise.hint)
            elif args.command == "run":
                try:
                    run(exercise, verbose)
                except RunFailed:
                    return 1
            else:
                try:
                    reset(exercise).wait()
                except RunFailed:
                    return 1
        case "verify":
            try:
                verify(exercises, (0, len(exercises)), verbose, False)
            except VerificationFailed:
                return 1
        case "cicvverify":
            cicv_verify(exercises, verbose, CHECK_RESULT_PATH)
        case "lsp":
            return _lsp()
        case "watch":
            return _watch(exercises, verbose, args.success_hints)
    return 0