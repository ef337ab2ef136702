"""Code generation data models."""

import re

from pydantic import BaseModel, Field

FILE_MARKER = "// FILE: "

_FILE_SECTION = re.compile(r"^// FILE: (?P<path>.+)$", re.MULTILINE)


class GeneratedFile(BaseModel):
    """A generated file, held in memory until it is committed."""

    path: str = Field(..., min_length=1)
    content: str


class GenerationResult(BaseModel):
    """Output of the code generation service."""

    files: list[GeneratedFile] = Field(default_factory=list)
    failed: bool = False
    chat_id: str | None = None


class InjectionResult(BaseModel):
    """Output of invariant injection.

    ``code`` is a concatenation of ``// FILE: <path>`` sections; only the
    paths listed in ``injected_files`` are extracted for commit.
    """

    code: str
    injected_files: list[str] = Field(default_factory=list)

    def extract_files(self) -> dict[str, str]:
        """Return ``{path: content}`` for every injected file present in ``code``."""
        sections = split_sections(self.code)
        wanted = set(self.injected_files)
        return {path: content for path, content in sections.items() if path in wanted}


def join_sections(files: list[GeneratedFile]) -> str:
    """Concatenate files into ``// FILE:`` sections."""
    return "\n\n".join(f"{FILE_MARKER}{f.path}\n{f.content}" for f in files)


def split_sections(code: str) -> dict[str, str]:
    """Inverse of ``join_sections``. Later sections win on duplicate paths."""
    matches = list(_FILE_SECTION.finditer(code))
    sections: dict[str, str] = {}
    for i, match in enumerate(matches):
        start = match.end() + 1
        end = matches[i + 1].start() if i + 1 < len(matches) else len(code)
        content = code[start:end]
        if i + 1 < len(matches) and content.endswith("\n\n"):
            content = content[:-2]
        sections[match.group("path").strip()] = content
    return sections


def merge_files(
    injected: dict[str, str], generated: list[GeneratedFile]
) -> list[GeneratedFile]:
    """Union of injected and generated files; injected files win on path collision."""
    merged = [GeneratedFile(path=path, content=content) for path, content in injected.items()]
    merged.extend(f for f in generated if f.path not in injected)
    return merged
