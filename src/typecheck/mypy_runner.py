"""Running mypy in collection and analysis mode."""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from typing import TYPE_CHECKING

from contract.payloads import TemplateContextRecord, decode_collected, decode_mypy_line
from diagnostics.models import RawDiagnostic
from typecheck.results import (
    AnalysisResult,
    CollectionResult,
    ContextObservation,
    ObservedVariable,
    RenderCall,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path

    from contract.payloads import MypyMessage
    from rules.config import CheckerConfig

logger = logging.getLogger(__name__)

COLLECT_FILE_ENV = "JINJASTAN_COLLECT_FILE"
RENDER_FUNCTIONS_ENV = "JINJASTAN_RENDER_FUNCTIONS"

PLUGIN_MODULE = "typecheck.plugin"

MYPY_INI = """\
[mypy]
plugins = {plugin}
follow_imports = silent
warn_unused_ignores = False
warn_unused_configs = False
"""

# Exit codes 0 and 1 mean "ran fine, found nothing / found errors".
_FATAL_EXIT_CODE = 2


def write_mypy_config(directory: Path) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "mypy.ini"
    path.write_text(MYPY_INI.format(plugin=PLUGIN_MODULE), encoding="utf-8")
    return path


def messages_to_diagnostics(messages: Sequence[MypyMessage], root: Path) -> list[RawDiagnostic]:
    """Turn mypy messages into diagnostics.

    Notes attach to the error they follow (same file and line) as part of
    its tip; stray notes are dropped.
    """
    diagnostics: list[RawDiagnostic] = []
    for message in messages:
        file = (root / message.file).resolve()
        if message.severity == "note":
            if diagnostics and diagnostics[-1].file == file and diagnostics[-1].line == message.line:
                previous = diagnostics[-1]
                tip = message.message if previous.tip is None else f"{previous.tip}\n{message.message}"
                diagnostics[-1] = RawDiagnostic(
                    file=previous.file,
                    line=previous.line,
                    message=previous.message,
                    identifier=previous.identifier,
                    tip=tip,
                    can_be_suppressed=previous.can_be_suppressed,
                )
            continue
        diagnostics.append(
            RawDiagnostic(
                file=file,
                line=message.line,
                message=message.message,
                identifier=message.code,
                tip=message.hint,
            )
        )
    return diagnostics


class MypyRunner:
    """The :class:`~typecheck.results.TypeChecker` backed by mypy.

    mypy runs as a subprocess from the project root so application modules
    resolve the way they do for the project itself.
    """

    def __init__(
        self,
        root: Path,
        directory: Path,
        config: CheckerConfig,
        *,
        run: Callable[..., subprocess.CompletedProcess[str]] = subprocess.run,
    ) -> None:
        self.root = root
        self.directory = directory
        self.config = config
        self._run = run

    def _command(self, files: Sequence[Path]) -> list[str]:
        config_file = write_mypy_config(self.directory)
        return [
            self.config.python_executable or sys.executable,
            "-m",
            "mypy",
            "--config-file",
            str(config_file),
            "--output",
            "json",
            "--no-error-summary",
            "--no-incremental",
            *self.config.extra_args,
            *(str(file) for file in files),
        ]

    def _invoke(self, files: Sequence[Path], env: dict[str, str]) -> tuple[list[MypyMessage], list[str]]:
        """Run mypy; return its messages and any errors that are not file specific."""
        command = self._command(files)
        logger.debug("Running %s", " ".join(command))
        try:
            result = self._run(
                command,
                cwd=self.root,
                env=env,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            return [], [f"Unable to run mypy: {exc}"]

        messages: list[MypyMessage] = []
        other: list[str] = []
        for line in (result.stdout or "").splitlines():
            message = decode_mypy_line(line)
            if message is not None:
                messages.append(message)
            elif line.strip():
                other.append(line.rstrip())

        if result.returncode >= _FATAL_EXIT_CODE:
            other.extend(line.rstrip() for line in (result.stderr or "").splitlines() if line.strip())
            return messages, other or [f"mypy exited with status {result.returncode}"]
        return messages, []

    def collect(self, files: Sequence[Path]) -> CollectionResult:
        collect_file = self.directory / "collected.jsonl"
        self.directory.mkdir(parents=True, exist_ok=True)
        collect_file.unlink(missing_ok=True)

        env = dict(os.environ)
        env[COLLECT_FILE_ENV] = str(collect_file)
        env[RENDER_FUNCTIONS_ENV] = ",".join(self.config.render_functions)

        _messages, fatal = self._invoke(files, env)
        result = CollectionResult(not_file_specific_errors=fatal)
        if fatal or not collect_file.exists():
            return result

        records, errors = decode_collected(
            collect_file.read_bytes().splitlines(), str(collect_file)
        )
        for error in errors:
            logger.warning("Skipping collected record at %s: %s", error.location(), error.message)

        for record in records:
            file = (self.root / record.file).resolve()
            if isinstance(record, TemplateContextRecord):
                result.observations.append(
                    ContextObservation(
                        template=record.data.template,
                        file=file,
                        line=record.data.start_line,
                        variables=tuple(
                            ObservedVariable(v.name, v.type, tuple(v.modules))
                            for v in record.data.variables
                        ),
                    )
                )
            else:
                result.render_calls.append(
                    RenderCall(template=record.data.template, file=file, line=record.data.start_line)
                )
        return result

    def analyze(self, files: Sequence[Path]) -> AnalysisResult:
        env = dict(os.environ)
        env.pop(COLLECT_FILE_ENV, None)
        messages, fatal = self._invoke(files, env)
        if fatal:
            return AnalysisResult(not_file_specific_errors=fatal)
        return AnalysisResult(diagnostics=messages_to_diagnostics(messages, self.root))


__all__ = [
    "COLLECT_FILE_ENV",
    "PLUGIN_MODULE",
    "RENDER_FUNCTIONS_ENV",
    "MypyRunner",
    "messages_to_diagnostics",
    "write_mypy_config",
]
