"""Job model and the YAML build manifest consumed by the CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, model_validator


class OutputKind(str, Enum):
    """Supplementary outputs a compile job declares for its primary unit."""

    COMPILED_SOURCE = "compiled_source"
    SOURCE_RANGES = "source_ranges"


@dataclass(slots=True, eq=False)
class Job:
    """A proposed job.  Compile jobs name a primary unit; others do not.

    Jobs compare by identity so they can be collected in sets without
    requiring their outputs to be hashable.
    """

    name: str
    primary: Optional[str] = None
    outputs: dict[OutputKind, str] = field(default_factory=dict)

    def output_for(self, kind: OutputKind) -> str:
        """Return the declared path for *kind*, or an empty string."""
        return self.outputs.get(kind, "")

    def __repr__(self) -> str:
        return f"Job(name={self.name!r}, primary={self.primary!r})"


class JobEntry(BaseModel):
    """One job in the build manifest."""

    name: str
    primary: Optional[str] = None
    compiled_source: str = ""
    source_ranges: str = ""


class BuildManifest(BaseModel):
    """Top-level build manifest schema."""

    jobs: list[JobEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_unique(self) -> "BuildManifest":
        names: set[str] = set()
        primaries: set[str] = set()
        for job in self.jobs:
            if job.name in names:
                raise ValueError(f"duplicate job name in manifest: {job.name}")
            names.add(job.name)
            if job.primary:
                if job.primary in primaries:
                    raise ValueError(f"primary compiled by more than one job: {job.primary}")
                primaries.add(job.primary)
        return self

    def to_jobs(
        self,
        *,
        base_dir: str | Path = ".",
        build_dir: str = "",
        compiled_source_suffix: str = ".compiledsource",
        source_ranges_suffix: str = ".sourceranges",
    ) -> list[Job]:
        """Materialize manifest entries as jobs with absolute paths.

        Missing supplementary paths are derived from the primary's name,
        placed in *build_dir* (or beside the primary when empty).
        """
        base = Path(base_dir).resolve()
        jobs: list[Job] = []
        for entry in self.jobs:
            if not entry.primary:
                jobs.append(Job(name=entry.name))
                continue
            primary = (base / entry.primary).resolve()
            out_dir = (base / build_dir).resolve() if build_dir else primary.parent
            compiled = entry.compiled_source or str(out_dir / f"{primary.name}{compiled_source_suffix}")
            ranges = entry.source_ranges or str(out_dir / f"{primary.name}{source_ranges_suffix}")
            jobs.append(
                Job(
                    name=entry.name,
                    primary=str(primary),
                    outputs={
                        OutputKind.COMPILED_SOURCE: str((base / compiled).resolve()),
                        OutputKind.SOURCE_RANGES: str((base / ranges).resolve()),
                    },
                )
            )
        return jobs


def load_build_manifest(path: str | Path) -> BuildManifest:
    """Load and validate a build manifest from YAML."""
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError(f"Invalid build manifest structure: {p}")
    return BuildManifest.model_validate(raw)
