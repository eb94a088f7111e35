import logging
import subprocess
from typing import Optional, Sequence, Tuple

from .constants import BUILD_LAUNCH_ERR_MSG
from .errors import BuildLaunchError
from .models import BuildResult

log = logging.getLogger(__name__)


class SubprocessBuildBackend:
    def invoke(self, command: Sequence[str], working_dir: Optional[str]) -> Tuple[int, bytes]:
        """
        Run the build command to completion.

        stdout is discarded, stderr is captured in full. Raises OSError when
        the command cannot be started at all.
        """
        result = subprocess.run(
            list(command),
            cwd=working_dir,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
        )
        return result.returncode, result.stderr


class Builder:
    def __init__(self, command: Sequence[str], working_dir: Optional[str] = None, backend=None):
        self.command = list(command)
        self.working_dir = working_dir
        self.backend = backend or SubprocessBuildBackend()

    def build(self) -> BuildResult:
        """
        Build the program, blocking until the build command exits.

        A non-zero exit is an ordinary failed build and comes back as a
        BuildResult. A command that cannot even be launched raises
        BuildLaunchError.
        """
        log.info("Building application...")
        try:
            returncode, stderr = self.backend.invoke(self.command, self.working_dir)
        except OSError as e:
            raise BuildLaunchError(BUILD_LAUNCH_ERR_MSG % " ".join(self.command), e) from e

        output = stderr.decode("utf-8", errors="replace") if stderr else ""
        if returncode != 0:
            return BuildResult(success=False, output=output, returncode=returncode)

        log.info("Done...")
        return BuildResult(success=True, output=output, returncode=returncode)
