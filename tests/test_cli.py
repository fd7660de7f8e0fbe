import io
import json
import os
import sys

import pytest

from drillrunner.cli import (
    ExerciseCheckList,
    ExerciseNotFound,
    ExerciseResult,
    ExerciseStatistics,
    cicv_verify,
    find_exercise,
    list_exercises,
    main,
    rustc_exists,
)
from drillrunner.exercise import load_exercises

FAKE_RUSTC = r'''#!{python}
import os
import re
import sys

args = sys.argv[1:]
if "--version" in args:
    print("rustc 0.0.0")
    sys.exit(0)
target = args[args.index("-o") + 1]
source_path = next(a for a in args if a.endswith(".rs"))
with open(source_path, encoding="utf-8") as handle:
    source = handle.read()
if "compile_error!" in source:
    sys.stderr.write("error: does not compile\n")
    sys.exit(1)
lines = re.findall(r'println!\("([^"]*)"\)', source)
code = 101 if "assert!(false)" in source else 0
with open(target, "w", encoding="utf-8") as handle:
    handle.write("#!" + sys.executable + "\n")
    handle.write("import sys\n")
    for line in lines:
        handle.write("print(" + repr(line) + ")\n")
    handle.write("sys.exit(" + str(code) + ")\n")
os.chmod(target, 0o755)
'''

SUCCESS = {
    "compSuccess": ("compile", "fn main() {\n}\n", ""),
    "testSuccess": (
        "test",
        '#[test]\nfn passing() {\n    println!("THIS TEST TOO SHALL PASS");\n'
        "    assert!(true);\n}\n",
        "",
    ),
}

FAILURE = {
    "compFailure": ("compile", 'fn main() {\n    compile_error!("let");\n}\n', ""),
    "testFailure": (
        "test",
        '#[test]\nfn passing() {\n    compile_error!("asset");\n}\n',
        "Hello!",
    ),
    "testNotPassed": ("test", "#[test]\nfn not_passing() {\n    assert!(false);\n}\n", ""),
}

STATE = {
    "pending_exercise": (
        "compile",
        "// fake_exercise\n\n// I AM NOT DONE\n\nfn main() {\n\n}\n",
        "",
    ),
    "pending_test_exercise": (
        "test",
        "// I AM NOT DONE\n\n#[test]\nfn it_works() {}\n",
        "",
    ),
    "finished_exercise": ("compile", "// fake_exercise\n\nfn main() {\n\n}\n", ""),
}


@pytest.fixture
def toolchain(tmp_path, monkeypatch):
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    rustc = bin_dir / "rustc"
    rustc.write_text(FAKE_RUSTC.replace("{python}", sys.executable), encoding="utf-8")
    rustc.chmod(0o755)
    monkeypatch.setenv("PATH", str(bin_dir) + os.pathsep + os.environ.get("PATH", ""))
    return bin_dir


@pytest.fixture
def project(tmp_path, monkeypatch):
    def make(exercises):
        root = tmp_path / "project"
        (root / "exercises").mkdir(parents=True)
        entries = []
        for name, (mode, source, hint) in exercises.items():
            (root / "exercises" / f"{name}.rs").write_text(source, encoding="utf-8")
            entries.append(
                "[[exercises]]\n"
                f"name = {json.dumps(name)}\n"
                f'path = "exercises/{name}.rs"\n'
                f"mode = {json.dumps(mode)}\n"
                f"hint = {json.dumps(hint)}\n"
            )
        (root / "info.toml").write_text("\n".join(entries), encoding="utf-8")
        monkeypatch.chdir(root)
        return root

    return make


def test_runs_without_arguments(toolchain, project, capsys):
    project(SUCCESS)
    assert main([]) == 0
    assert "drillrunner watch" in capsys.readouterr().out


def test_fails_when_in_wrong_dir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert main([]) == 1


def test_version(capsys):
    assert main(["-v"]) == 0
    assert capsys.readouterr().out == "v5.5.1\n"


def test_verify_all_success(toolchain, project):
    project(SUCCESS)
    assert main(["verify"]) == 0


def test_verify_fails_if_some_fails(toolchain, project):
    project(FAILURE)
    assert main(["verify"]) == 1


def test_run_single_compile_success(toolchain, project):
    project(SUCCESS)
    assert main(["run", "compSuccess"]) == 0


def test_run_single_compile_failure(toolchain, project):
    project(FAILURE)
    assert main(["run", "compFailure"]) == 1


def test_run_single_test_success(toolchain, project):
    project(SUCCESS)
    assert main(["run", "testSuccess"]) == 0


def test_run_single_test_failure(toolchain, project):
    project(FAILURE)
    assert main(["run", "testFailure"]) == 1


def test_run_single_test_not_passed(toolchain, project):
    project(FAILURE)
    assert main(["run", "testNotPassed.rs"]) == 1


def test_run_test_that_fails_its_assertion(toolchain, project):
    project(FAILURE)
    assert main(["run", "testNotPassed"]) == 1


def test_run_single_test_no_filename(toolchain, project):
    project(SUCCESS)
    assert main(["run"]) == 1


def test_run_single_test_no_exercise(toolchain, project, capsys):
    project(FAILURE)
    assert main(["run", "compNoExercise.rs"]) == 1
    assert "No exercise found for 'compNoExercise.rs'!" in capsys.readouterr().out


def test_reset_no_exercise(capsys):
    assert main(["reset"]) == 1
    assert "positional arguments not provided" in capsys.readouterr().err


def test_get_hint_for_single_test(toolchain, project, capsys):
    project(FAILURE)
    assert main(["hint", "testFailure"]) == 0
    assert capsys.readouterr().out == "Hello!\n"


def test_run_compile_exercise_does_not_prompt(toolchain, project, capsys):
    project(STATE)
    assert main(["run", "pending_exercise"]) == 0
    assert "I AM NOT DONE" not in capsys.readouterr().out


def test_run_test_exercise_does_not_prompt(toolchain, project, capsys):
    project(STATE)
    assert main(["run", "pending_test_exercise"]) == 0
    assert "I AM NOT DONE" not in capsys.readouterr().out


def test_run_single_test_success_with_output(toolchain, project, capsys):
    project(SUCCESS)
    assert main(["--nocapture", "run", "testSuccess"]) == 0
    assert "THIS TEST TOO SHALL PASS" in capsys.readouterr().out


def test_run_single_test_success_without_output(toolchain, project, capsys):
    project(SUCCESS)
    assert main(["run", "testSuccess"]) == 0
    assert "THIS TEST TOO SHALL PASS" not in capsys.readouterr().out


def test_list(toolchain, project, capsys):
    project(SUCCESS)
    assert main(["list"]) == 0
    assert "compSuccess" in capsys.readouterr().out


def test_list_no_pending(toolchain, project, capsys):
    project(SUCCESS)
    assert main(["list"]) == 0
    assert "Pending" not in capsys.readouterr().out


def test_list_both_done_and_pending(toolchain, project, capsys):
    project(STATE)
    assert main(["list"]) == 0
    out = capsys.readouterr().out
    assert "Done" in out and "Pending" in out


def test_list_without_pending(toolchain, project, capsys):
    project(STATE)
    assert main(["list", "--solved"]) == 0
    assert "Pending" not in capsys.readouterr().out


def test_list_without_done(toolchain, project, capsys):
    project(STATE)
    assert main(["list", "--unsolved"]) == 0
    assert "Done" not in capsys.readouterr().out


def test_list_exercises_names(project):
    project(STATE)
    buffer = io.StringIO()
    done = list_exercises(load_exercises("info.toml"), names=True, out=buffer)
    assert done == 1
    assert buffer.getvalue().splitlines() == [
        "pending_exercise",
        "pending_test_exercise",
        "finished_exercise",
        "Progress: You completed 1 / 3 exercises (33.3 %).",
    ]


def test_list_exercises_filter_and_paths(project):
    project(STATE)
    buffer = io.StringIO()
    list_exercises(load_exercises("info.toml"), paths=True, filter="FINISHED", out=buffer)
    assert buffer.getvalue().splitlines()[0] == "exercises/finished_exercise.rs"
    assert len(buffer.getvalue().splitlines()) == 2


def test_find_exercise_next(project):
    project(STATE)
    assert find_exercise("next", load_exercises("info.toml")).name == "pending_exercise"


def test_find_exercise_next_when_all_done(project):
    project(SUCCESS)
    with pytest.raises(ExerciseNotFound, match="no more exercises"):
        find_exercise("next", load_exercises("info.toml"))


def test_find_exercise_unknown(project):
    project(SUCCESS)
    with pytest.raises(ExerciseNotFound, match="No exercise found for 'nope'!"):
        find_exercise("nope", load_exercises("info.toml"))


def test_rustc_exists(toolchain):
    assert rustc_exists() is True


def test_rustc_missing(tmp_path, monkeypatch):
    monkeypatch.setenv("PATH", str(tmp_path))
    assert rustc_exists() is False


def test_cicvverify(toolchain, project):
    root = project(SUCCESS)
    (root / ".github" / "result").mkdir(parents=True)
    assert main(["--nocapture", "cicvverify"]) == 0
    report = json.loads((root / ".github/result/check_result.json").read_text("utf-8"))
    assert report["statistics"]["total_exercations"] == 2
    assert report["statistics"]["total_succeeds"] == 2
    assert report["statistics"]["total_failures"] == 0
    assert report["user_name"] is None
    assert sorted(r["name"] for r in report["exercises"]) == ["compSuccess", "testSuccess"]


def test_cicv_verify_counts_failures(toolchain, project, tmp_path):
    project(FAILURE)
    output = tmp_path / "report.json"
    result = cicv_verify(load_exercises("info.toml"), False, str(output))
    assert result.statistics.total_failures == 3
    assert result.statistics.total_succeeds == 0
    assert json.loads(output.read_text("utf-8"))["statistics"]["total_failures"] == 3


def test_check_list_json_round_trip():
    check_list = ExerciseCheckList(
        exercises=[ExerciseResult("intro1", True), ExerciseResult("intro2", False)],
        statistics=ExerciseStatistics(2, 1, 1, 7),
    )
    data = json.loads(check_list.to_json())
    assert list(data) == ["exercises", "user_name", "statistics"]
    assert data["exercises"] == [
        {"name": "intro1", "result": True},
        {"name": "intro2", "result": False},
    ]
    assert data["statistics"] == {
        "total_exercations": 2,
        "total_succeeds": 1,
        "total_failures": 1,
        "total_time": 7,
    }


def test_lsp_writes_project(toolchain, project, monkeypatch):
    root = project(SUCCESS)
    monkeypatch.setenv("RUST_SRC_PATH", "/opt/rust/library")
    assert main(["lsp"]) == 0
    data = json.loads((root / "rust-project.json").read_text("utf-8"))
    assert data["sysroot_src"] == "/opt/rust/library"
    assert len(data["crates"]) == 2