"""Jinja2 environment used to parse templates for analysis."""

from __future__ import annotations

from typing import TYPE_CHECKING

from jinja2 import ChoiceLoader, Environment, FileSystemLoader, PrefixLoader

if TYPE_CHECKING:
    from pathlib import Path

    from jinja2 import BaseLoader, nodes

    from rules.config import JinjastanConfig

# Extensions whose tags the compiler understands.
BUILTIN_EXTENSIONS = ("jinja2.ext.do", "jinja2.ext.loopcontrols")


def build_loader(root: Path, config: JinjastanConfig) -> BaseLoader:
    """Build the loader resolving logical template names.

    Search paths are tried first, then prefixed namespaces
    (``<prefix>/<name>``), mirroring how applications usually combine
    ``FileSystemLoader`` and ``PrefixLoader``.
    """
    loaders: list[BaseLoader] = [
        FileSystemLoader([str(root / path) for path in config.template_paths]),
    ]
    if config.namespaces:
        loaders.append(
            PrefixLoader(
                {
                    prefix: FileSystemLoader(str(root / directory))
                    for prefix, directory in config.namespaces.items()
                }
            )
        )
    return ChoiceLoader(loaders)


def build_environment(root: Path, config: JinjastanConfig) -> Environment:
    """Return an environment configured for parsing (never for rendering)."""
    extensions = list(BUILTIN_EXTENSIONS)
    extensions.extend(ext for ext in config.extensions if ext not in extensions)
    return Environment(
        loader=build_loader(root, config),
        extensions=extensions,
        autoescape=False,
    )


def parse_template(environment: Environment, template: Path) -> nodes.Template:
    """Parse a template file into its Jinja2 AST.

    Raises:
        jinja2.TemplateSyntaxError: If the template is not valid Jinja2.
        OSError: If the file cannot be read.
    """
    source = template.read_text(encoding="utf-8")
    return environment.parse(source, filename=str(template))


__all__ = [
    "BUILTIN_EXTENSIONS",
    "build_environment",
    "build_loader",
    "parse_template",
]
