"""Language profiles: which image runs a language and how a source file is
compiled and run inside it.

The table is built once at import and never mutated.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Mapping


@dataclass(frozen=True)
class LanguageProfile:
    name: str
    image: str
    extension: str
    command_template: Callable[[str], str]

    def source_file(self, stem: str = "main") -> str:
        return f"{stem}{self.extension}"

    def run_command(self, filename: str) -> str:
        return self.command_template(filename)


def _strip_ext(filename: str, ext: str) -> str:
    return filename[: -len(ext)] if filename.endswith(ext) else filename


def _java(filename: str) -> str:
    class_name = _strip_ext(filename, ".java")
    return f"javac {filename} && java {class_name}"


def _cpp(filename: str) -> str:
    executable = _strip_ext(filename, ".cpp")
    return f"g++ -o {executable} {filename} && ./{executable}"


def _c(filename: str) -> str:
    executable = _strip_ext(filename, ".c")
    return f"gcc -o {executable} {filename} && ./{executable}"


LANGUAGES: Mapping[str, LanguageProfile] = MappingProxyType(
    {
        "javascript": LanguageProfile(
            "javascript", "node:18-alpine", ".js", lambda f: f"node {f}"
        ),
        "python": LanguageProfile(
            "python", "python:3.11-alpine", ".py", lambda f: f"python {f}"
        ),
        "java": LanguageProfile("java", "openjdk:17-alpine", ".java", _java),
        "cpp": LanguageProfile("cpp", "gcc:latest", ".cpp", _cpp),
        "c": LanguageProfile("c", "gcc:latest", ".c", _c),
    }
)


def get_profile(language: str) -> LanguageProfile | None:
    return LANGUAGES.get(language)


def supported_languages() -> list[str]:
    return list(LANGUAGES)
