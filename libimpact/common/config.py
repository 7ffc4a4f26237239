import os
import sys
from typing import Iterable, Tuple

import toml
from pydantic import BaseModel, ConfigDict, Field

LIBIMPACT_PACKAGE_DIR = os.path.normpath(os.path.join(os.path.dirname(__file__), '..'))


def env_flag(name: str, default: str = 'n') -> bool:
    return os.getenv(name, default).lower() in ('1', 'y', 'yes', 't', 'true')


def default_maven_cmd() -> str:
    return 'mvn.cmd' if sys.platform == 'win32' else 'mvn'


class Config(BaseModel):
    model_config = ConfigDict(frozen=True, extra='ignore')

    # Common flags
    VERBOSE: bool = env_flag('LIBIMPACT_VERBOSE')

    # Project layout, source directories are relative to the project directory
    PROJECT_DIR: str = os.getenv('LIBIMPACT_PROJECT_DIR', '.')
    MAIN_SOURCE_DIR: str = os.getenv('LIBIMPACT_MAIN_SOURCE_DIR', 'src/main/java')
    TEST_SOURCE_DIR: str = os.getenv('LIBIMPACT_TEST_SOURCE_DIR', 'src/test/java')
    SOURCE_EXTENSION: str = 'java'

    # Build tool
    MAVEN_CMD: str = os.getenv('LIBIMPACT_MAVEN_CMD', default_maven_cmd())

    # Repair loop
    MAX_ITERATIONS: int = Field(int(os.getenv('LIBIMPACT_MAX_ITERATIONS', '20')), ge=1)

    # Compiler output lines with these prefixes never carry errors
    NON_ERROR_PREFIXES: Tuple[str, ...] = ('[WARNING]', '[INFO]')

    # Test stubbing, the marker distinguishes dependency removal failures from ordinary ones
    LIBRARY_REMOVAL_MARKER: str = 'LIB-REMOVED'
    TEST_FAILURE_STATEMENT: str = 'throw new AssertionError("{marker}: test disabled after dependency removal");'

    # Indentation unit used for synthesized statements
    INDENT: str = '    '

    # Report output, relative to the project directory
    REPORT_DIR: str = '.libimpact'

    @property
    def project_dir(self) -> str:
        return os.path.abspath(self.PROJECT_DIR)

    @property
    def main_dir(self) -> str:
        return os.path.normpath(os.path.join(self.project_dir, self.MAIN_SOURCE_DIR))

    @property
    def test_dir(self) -> str:
        return os.path.normpath(os.path.join(self.project_dir, self.TEST_SOURCE_DIR))

    @property
    def report_dir(self) -> str:
        return os.path.normpath(os.path.join(self.project_dir, self.REPORT_DIR))

    @property
    def test_failure_statement(self) -> str:
        return self.TEST_FAILURE_STATEMENT.format(marker=self.LIBRARY_REMOVAL_MARKER)

    def with_overrides(self, **values) -> 'Config':
        data = self.model_dump()
        data.update((name, value) for name, value in values.items() if value is not None)
        return self.__class__(**data)

    def save(self, path: str):
        data = {name: getattr(self, name) for name in self.names()}
        data['NON_ERROR_PREFIXES'] = list(self.NON_ERROR_PREFIXES)
        with open(path, 'wt', encoding='utf-8') as f:
            toml.dump(data, f)

    @classmethod
    def load(cls, path: str, **overrides) -> 'Config':
        with open(path, 'rt', encoding='utf-8') as f:
            data = toml.load(f)

        values = {name: value for name, value in data.items() if name in cls.model_fields}
        values.update((name, value) for name, value in overrides.items() if value is not None)
        return cls(**values)

    @classmethod
    def names(cls) -> Iterable[str]:
        for name in cls.model_fields:
            if not name.startswith('_') and name == name.upper():
                yield name
