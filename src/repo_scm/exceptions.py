"""Exception hierarchy for repo-scm."""

from typing import List, Optional, Sequence, Union


class RepoScmError(Exception):
    """Base class for every error raised by repo-scm."""


class ManifestError(RepoScmError):
    """The manifest is malformed, ambiguous or names an invalid origin."""


class ConfigError(RepoScmError):
    """The configuration file or an override value is invalid."""


class CodecError(RepoScmError):
    """A persisted change log or snapshot history could not be decoded."""


class VcsCommandError(RepoScmError):
    """A git invocation exited with a non-zero status.

    ``partial_entries`` holds change-log entries that were extracted for
    earlier modules before the failing command, so callers can still keep them.
    """

    def __init__(
        self,
        command: Union[str, Sequence[str]],
        status: Optional[int] = None,
        stderr: str = "",
    ):
        if not isinstance(command, str):
            command = " ".join(str(part) for part in command)
        self.command = command
        self.status = status
        self.stderr = stderr.strip() if stderr else ""
        self.partial_entries: List = []

        message = f"git failed to execute [{self.command}]"
        if status is not None:
            message += f" (exit code {status})"
        if self.stderr:
            message += f": {self.stderr}"
        super().__init__(message)
