# drillrunner

A terminal companion for working through a set of small programming
exercises. Each exercise is a Rust source file. Depending on its mode, the
file is compiled and run, compiled as a test harness and run, linted with
clippy, or built with cargo. An exercise counts as finished once it passes and
its `I AM NOT DONE` marker comment has been removed.

## Installation

```
pip install .
```

`rustc` must be on your `PATH`. Clippy and build-script exercises also need
`cargo`, and `reset` needs `git`.

## The exercise list

Run every command from the directory that holds `info.toml`. That file lists
the exercises in order:

```toml
[[exercises]]
name = "intro1"
path = "exercises/intro/intro1.rs"
mode = "compile"        # compile, test, clippy or buildscript
hint = "Remove the marker comment to move on."
```

The package does not ship any exercises or an `info.toml`. You provide both.

## Usage

```
drillrunner                     # welcome text and a short introduction
drillrunner --version           # print the version
drillrunner watch               # verify in order, re-check whenever a file changes
drillrunner verify              # verify every exercise once, in order
drillrunner run NAME            # compile and run or test one exercise
drillrunner run next            # the first exercise not yet done
drillrunner hint NAME           # show the hint for one exercise
drillrunner reset NAME          # run `git stash -- <path>` for one exercise
drillrunner list                # table of exercises and their status
drillrunner lsp                 # write rust-project.json for rust-analyzer
drillrunner cicvverify          # run every exercise, write a JSON report
```

The name `next` also works with `hint` and `reset`.

Pass `--nocapture` before the subcommand to show test output.

The command exits with status 1 in these cases:

- `info.toml` is missing.
- `rustc` cannot be run.
- An exercise is not found.
- A required argument is missing.
- A run or a verification fails.

### Listing

`drillrunner list` accepts:

- `-p`, `--paths`: print only paths
- `-n`, `--names`: print only names
- `-f`, `--filter PATTERNS`: comma-separated substrings matched against names and paths
- `-u`, `--unsolved`: only exercises still pending
- `-s`, `--solved`: only exercises already done

It finishes with a progress line such as
`Progress: You completed 3 / 10 exercises (30.0 %).`

### Watch mode

`drillrunner watch` first verifies every exercise in order. After that it
re-checks whenever a `.rs` file under `./exercises` is created or modified.
It checks the changed exercise first and then the others that are still
pending. While it runs you can type:

- `hint`: the hint for the exercise that last failed
- `clear`: clear the screen
- `quit`: leave watch mode
- `!<cmd>`: run a command, for example `!rustc --explain E0381`
- `help`: list these commands

Add `--success-hints` (`drillrunner watch --success-hints`) to show each
exercise's hint once it passes.

### rust-analyzer

`drillrunner lsp` writes `./rust-project.json`. It adds one crate for every
`.rs` file under `./exercises`. The standard library path is taken from
`RUST_SRC_PATH` if that is set. Otherwise it is taken from
`rustc --print sysroot`.

### Grading report

`drillrunner cicvverify` runs every exercise concurrently. It then writes
`.github/result/check_result.json`, and that directory must already exist.
The report lists each exercise's result, together with totals for exercises,
successes, failures and elapsed seconds.

### Environment

Set `NO_EMOJI` to get plain-text markers in place of emoji.

## Library use

The modules can also be used directly:

```python
from drillrunner.exercise import load_exercises
from drillrunner.verify import VerificationFailed, verify

exercises = load_exercises("info.toml")
try:
    verify(exercises, (0, len(exercises)))
except VerificationFailed as failure:
    print(failure.exercise.hint)
```

Each module has its own job:

- `drillrunner.exercise`: `Exercise`, `Mode` and `load_exercises`.
  - `Exercise.compile()` raises `CompilationFailed` when the build fails.
  - `CompiledExercise.run()` raises `ExecutionFailed` when the program exits unsuccessfully.
  - `Exercise.state()` returns the lines around the marker, or an empty list when the exercise is done.
- `drillrunner.run`: `run` and `reset`. Both raise `RunFailed`.
- `drillrunner.verify`: `verify` and `test`. Both raise `VerificationFailed`.
- `drillrunner.project`: `RustAnalyzerProject`.
- `drillrunner.cli`: `main`, `find_exercise`, `list_exercises` and `cicv_verify`.