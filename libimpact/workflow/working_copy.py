import os
from logging import getLogger
from subprocess import Popen, STDOUT, PIPE
from typing import List

from pydantic import BaseModel

from ..common.config import Config
from ..common.util import split_lines

logger = getLogger(__name__)


class BuildError(Exception):
    """The build tool could not be started"""


class BuildOutput(BaseModel):
    exit_code: int
    lines: List[str]

    @property
    def failed(self) -> bool:
        return self.exit_code != 0


class MavenProject:
    """Runs Maven goals in the project directory, capturing their output"""

    def __init__(self, config: Config):
        self.config = config
        self.project_dir: str = config.project_dir
        self.maven_cmd: str = config.MAVEN_CMD

    def run_command(self, action: str, command: List[str]) -> BuildOutput:
        logger.info(f'Command to {action}: {" ".join(command)}')
        try:
            process = Popen(command, cwd=self.project_dir, stdout=PIPE, stderr=STDOUT)
        except OSError as e:
            raise BuildError(f'Failed to {action}, cannot run {command[0]!r}: [{e.__class__.__name__}] {e}') from e

        output, _ = process.communicate()
        lines = split_lines(output.decode('utf-8', errors='replace'))

        if process.returncode:
            logger.info(f'Failed to {action}, exit code: {process.returncode}')

        return BuildOutput(exit_code=process.returncode, lines=lines)

    def maven(self, action: str, *goals: str) -> BuildOutput:
        if not os.path.isdir(self.project_dir):
            raise BuildError(f'Project directory does not exist: {self.project_dir}')
        return self.run_command(action, [self.maven_cmd, '--batch-mode', *goals])

    def compile(self) -> BuildOutput:
        return self.maven('compile production code', 'clean', 'compile')

    def test_compile(self) -> BuildOutput:
        return self.maven('compile test code', 'test-compile')

    def test(self) -> BuildOutput:
        return self.maven('run tests', 'test')
