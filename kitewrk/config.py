from __future__ import annotations

from dataclasses import dataclass

DEFAULT_BRANCH = "master"
DEFAULT_COMMIT = "HEAD"
DEFAULT_BUILD_COUNT = 8
DEFAULT_POLL_INTERVAL_S = 1.0


@dataclass(frozen=True)
class BuildSpec:
    """Everything needed to ask the build service for one new build."""

    pipeline: str
    branch: str
    commit: str
    message: str


@dataclass(frozen=True)
class RunParams:
    """Template shared by every build of a single load run."""

    pipeline: str
    builds: int = DEFAULT_BUILD_COUNT
    branch: str = DEFAULT_BRANCH
    commit: str = DEFAULT_COMMIT

    def __post_init__(self) -> None:
        if self.builds < 0:
            raise ValueError("RunParams builds must be >= 0")

    def build_spec(self, index: int) -> BuildSpec:
        return BuildSpec(
            pipeline=self.pipeline,
            branch=self.branch,
            commit=self.commit,
            message=build_message(index, self.builds),
        )


def build_message(index: int, total: int) -> str:
    return f":rocket: kitewrk build {index + 1} of {total}"
