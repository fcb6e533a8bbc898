"""
Base probe class and the command helpers shared by all probes.
"""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from typing import Any, Callable

from sysnap.records import FieldError, ProbeResult

logger = logging.getLogger(__name__)


def run_command(
    cmd: list[str],
    timeout: float = 30,
    check: bool = False,
    log: logging.Logger = logger,
) -> tuple[str, str, int]:
    """
    Run a command and return output.

    Args:
        cmd: Command and arguments as list.
        timeout: Timeout in seconds.
        check: If True, raise on non-zero exit.
        log: Logger that reports timeouts and missing commands.

    Returns:
        Tuple of (stdout, stderr, returncode). A command that is missing or
        times out gives returncode -1.
    """
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=check,
        )
        return result.stdout, result.stderr, result.returncode
    except subprocess.TimeoutExpired:
        log.warning(f"Command timed out: {' '.join(cmd)}")
        return "", "Command timed out", -1
    except FileNotFoundError:
        log.debug(f"Command not found: {cmd[0]}")
        return "", f"Command not found: {cmd[0]}", -1
    except subprocess.CalledProcessError as e:
        return e.stdout or "", e.stderr or "", e.returncode


def command_output(cmd: list[str], stdout: str, stderr: str, returncode: int) -> str:
    """Return stdout of a finished command, raising RuntimeError if it failed."""
    if returncode != 0:
        reason = stderr.strip() or f"exit status {returncode}"
        raise RuntimeError(f"{cmd[0]} failed: {reason}")
    return stdout


class BaseProbe(ABC):
    """
    Abstract base class for all domain probes.

    Subclasses declare `record_type` and implement `fields()`, mapping each
    record field to a getter. `collect()` runs every getter on its own, so a
    failing getter only leaves its field absent.
    """

    name: str = "base"
    description: str = "Base probe"
    record_type: type = object

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.name}")

    @abstractmethod
    def fields(self) -> dict[str, Callable[[], Any]]:
        """
        Return the getters for this probe's record.

        Returns:
            Mapping of record field name to a zero-argument callable.
        """
        pass

    def collect(self) -> ProbeResult:
        """Run every field getter and build the domain record."""
        return self.build_record(self.record_type, self.fields())

    def build_record(
        self,
        record_type: type,
        getters: dict[str, Callable[[], Any]],
        prefix: str = "",
    ) -> ProbeResult:
        """
        Build a record from per-field getters.

        A getter that raises leaves its field absent and adds a FieldError.
        A getter may itself return a ProbeResult for a nested record; its
        record becomes the field value and its errors are carried up.

        Args:
            record_type: Record dataclass to instantiate.
            getters: Mapping of field name to zero-argument callable.
            prefix: Dotted path prepended to field names in errors.
        """
        values: dict[str, Any] = {}
        errors: list[FieldError] = []

        for field_name, getter in getters.items():
            path = f"{prefix}{field_name}"
            try:
                value = getter()
            except Exception as e:
                self.logger.warning(f"Could not collect {self.name}.{path}: {e}")
                errors.append(FieldError(self.name, path, str(e) or type(e).__name__))
                value = None

            if isinstance(value, ProbeResult):
                errors.extend(value.field_errors)
                value = value.record
            values[field_name] = value

        return ProbeResult(record=record_type(**values), field_errors=tuple(errors))

    def __call__(self) -> ProbeResult:
        return self.collect()

    def run_command(
        self,
        cmd: list[str],
        timeout: float = 30,
        check: bool = False,
    ) -> tuple[str, str, int]:
        """Run a command, logging through this probe's logger."""
        return run_command(cmd, timeout=timeout, check=check, log=self.logger)

    def require_command(self, cmd: list[str], timeout: float = 30) -> str:
        """Run a command and return stdout, raising if it fails."""
        return command_output(cmd, *self.run_command(cmd, timeout=timeout))

    def read_file(self, path: str, default: str = "") -> str:
        """
        Read a file and return its contents.

        Args:
            path: Path to the file.
            default: Default value if file cannot be read.

        Returns:
            File contents or default value.
        """
        try:
            with open(path) as f:
                return f.read()
        except OSError as e:
            self.logger.debug(f"Could not read {path}: {e}")
            return default

    def read_file_lines(self, path: str) -> list[str]:
        """Read a file and return lines as list."""
        content = self.read_file(path)
        if content:
            return content.strip().split("\n")
        return []

    def detect_distro(self) -> dict[str, str]:
        """
        Detect Linux distribution information.

        Returns:
            Dictionary with 'id', 'version', 'name', 'like' keys.
        """
        import distro

        return {
            "id": distro.id(),
            "version": distro.version(),
            "name": distro.name(pretty=True),
            "like": distro.like(),
        }
