from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any

import orjson

from contract import (
    ContextPayload,
    RenderPayload,
    TemplateContextRecord,
    TemplateRenderRecord,
    VariablePayload,
    encode_collected,
)
from rules.config import CheckerConfig
from typecheck import ContextObservation, MypyRunner, ObservedVariable, RenderCall
from typecheck.mypy_runner import COLLECT_FILE_ENV, RENDER_FUNCTIONS_ENV


class _FakeRun:
    """Stands in for ``subprocess.run``; records every invocation."""

    def __init__(self, *, stdout: str = "", stderr: str = "", returncode: int = 0, collected: bytes = b"") -> None:
        self.stdout = stdout
        self.stderr = stderr
        self.returncode = returncode
        self.collected = collected
        self.calls: list[tuple[list[str], dict[str, Any]]] = []

    def __call__(self, command: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        self.calls.append((command, kwargs))
        collect_file = kwargs["env"].get(COLLECT_FILE_ENV)
        if collect_file and self.collected:
            Path(collect_file).write_bytes(self.collected)
        return subprocess.CompletedProcess(command, self.returncode, self.stdout, self.stderr)


def _mypy_json(**fields: Any) -> str:
    message = {"column": 0, "hint": None, "code": None, "severity": "error", **fields}
    return orjson.dumps(message).decode()


def test_analyze_parses_json_output_and_merges_notes(tmp_path: Path) -> None:
    stdout = "\n".join(
        [
            _mypy_json(file="unit.py", line=12, message='"User" has no attribute "nmae"', code="attr-defined"),
            _mypy_json(file="unit.py", line=12, message='Perhaps you meant "name"?', severity="note"),
            _mypy_json(file="unit.py", line=12, message="Another hint", severity="note"),
            _mypy_json(file="unit.py", line=30, message="Stray note", severity="note"),
            _mypy_json(file="other.py", line=2, message="Boom", code="misc"),
        ]
    )
    run = _FakeRun(stdout=stdout, returncode=1)
    runner = MypyRunner(tmp_path, tmp_path / "mypy", CheckerConfig(extra_args=["--strict"]), run=run)

    result = runner.analyze([tmp_path / "unit.py"])

    assert result.not_file_specific_errors == []
    assert len(result.diagnostics) == 2
    first, second = result.diagnostics
    assert first.file == (tmp_path / "unit.py").resolve()
    assert first.line == 12
    assert first.identifier == "attr-defined"
    assert first.tip == 'Perhaps you meant "name"?\nAnother hint'
    assert second.message == "Boom"

    command, kwargs = run.calls[0]
    assert command[1:3] == ["-m", "mypy"]
    assert "--no-incremental" in command
    assert command[command.index("--output") + 1] == "json"
    assert "--strict" in command
    assert command[-1] == str(tmp_path / "unit.py")
    assert kwargs["cwd"] == tmp_path
    assert COLLECT_FILE_ENV not in kwargs["env"]
    config_file = Path(command[command.index("--config-file") + 1])
    assert "plugins = typecheck.plugin" in config_file.read_text(encoding="utf-8")


def test_analyze_reports_crashes_as_not_file_specific(tmp_path: Path) -> None:
    run = _FakeRun(stdout="", stderr="mypy: can't read file 'x.py'\n", returncode=2)
    runner = MypyRunner(tmp_path, tmp_path / "mypy", CheckerConfig(), run=run)

    result = runner.analyze([tmp_path / "x.py"])

    assert result.diagnostics == []
    assert result.not_file_specific_errors == ["mypy: can't read file 'x.py'"]


def test_analyze_reports_missing_interpreter(tmp_path: Path) -> None:
    def run(command: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        raise FileNotFoundError(command[0])

    runner = MypyRunner(tmp_path, tmp_path / "mypy", CheckerConfig(python_executable="/nope/python"), run=run)

    result = runner.analyze([])

    assert len(result.not_file_specific_errors) == 1
    assert result.not_file_specific_errors[0].startswith("Unable to run mypy")


def test_collect_reads_plugin_records(tmp_path: Path) -> None:
    collected = b"".join(
        [
            encode_collected(
                TemplateRenderRecord(
                    collector="template_render",
                    file="app/views.py",
                    data=RenderPayload(template="page.html", start_line=10),
                )
            ),
            encode_collected(
                TemplateContextRecord(
                    collector="template_context",
                    file="app/views.py",
                    data=ContextPayload(
                        template="page.html",
                        start_line=10,
                        variables=[
                            VariablePayload(name="user", type="app.models.User", modules=["app.models"])
                        ],
                    ),
                )
            ),
            b"garbage\n",
        ]
    )
    run = _FakeRun(collected=collected)
    config = CheckerConfig(render_functions=["app.render", "flask.render_template"])
    runner = MypyRunner(tmp_path, tmp_path / "mypy", config, run=run)

    result = runner.collect([tmp_path / "app" / "views.py"])

    views = (tmp_path / "app" / "views.py").resolve()
    assert result.not_file_specific_errors == []
    assert result.render_calls == [RenderCall("page.html", views, 10)]
    assert result.observations == [
        ContextObservation(
            "page.html",
            views,
            10,
            (ObservedVariable("user", "app.models.User", ("app.models",)),),
        )
    ]
    env = run.calls[0][1]["env"]
    assert env[RENDER_FUNCTIONS_ENV] == "app.render,flask.render_template"
    assert env[COLLECT_FILE_ENV] == str(tmp_path / "mypy" / "collected.jsonl")


def test_collect_without_records(tmp_path: Path) -> None:
    runner = MypyRunner(tmp_path, tmp_path / "mypy", CheckerConfig(), run=_FakeRun())

    result = runner.collect([])

    assert result.render_calls == []
    assert result.observations == []
    assert result.not_file_specific_errors == []
