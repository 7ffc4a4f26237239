import os
import time
from contextlib import contextmanager
from enum import Enum
from logging import Logger, INFO, getLogger, StreamHandler, Formatter
from typing import Iterator, List, Dict, Optional

from jinja2 import Environment, FileSystemLoader

from .config import LIBIMPACT_PACKAGE_DIR

TEMPLATES_DIR = os.path.join(LIBIMPACT_PACKAGE_DIR, 'templates')
MARKDOWN_TEMPLATES_DIR = os.path.join(TEMPLATES_DIR, 'markdown')


def split_lines(text: str) -> List[str]:
    """Splits on CRLF or LF, a trailing newline does not start a new line"""
    if not text:
        return []
    return text.replace('\r\n', '\n').rstrip('\n').split('\n')


def count_lines(text: str) -> int:
    return len(split_lines(text))


def count_deleted_lines(original: str, modified: str) -> int:
    return max(0, count_lines(original) - count_lines(modified))


def write_text_file(path: str, content: str, encoding='utf-8'):
    with open(path, 'wt', encoding=encoding, newline='') as f:
        f.write(content)


def read_text_file(path: str, encoding='utf-8') -> str:
    with open(path, 'rt', encoding=encoding, newline='') as f:
        return f.read()


def iter_tree(basedir: str, extension: str = '') -> Iterator[str]:
    """Yields the files under basedir in a stable (sorted) walk order"""
    suffix = f'.{extension}' if extension else ''
    for dirpath, dirnames, filenames in os.walk(basedir):
        dirnames.sort()
        for filename in sorted(filenames):
            if filename.endswith(suffix):
                yield os.path.join(dirpath, filename)


def decode_normalize(content: bytes) -> str:
    try:
        decoded = content.decode('utf-8')
    except UnicodeDecodeError:
        decoded = content.decode('latin-1')

    return normalize(decoded)


def normalize(content: str) -> str:
    return content.replace('\r\n', '\n').replace('\r', '').replace('\0', '\f')


def percent(part: int, total: int) -> float:
    return 100.0 * part / total if total > 0 else 0.0


class SimpleEnum(str, Enum):

    def __str__(self):
        return f"{self.name}"

    def __repr__(self):
        return f"{self.__class__.__name__}.{self.name}"


def init_logger(loglevel=INFO) -> Logger:
    logger = getLogger()
    logger.setLevel(loglevel)

    for handler in list(logger.handlers):
        if getattr(handler, 'libimpact', False):
            logger.removeHandler(handler)

    handler = StreamHandler()
    handler.setLevel(loglevel)
    handler.libimpact = True

    formatter = Formatter('%(asctime)s %(name)s [%(levelname)s] %(message)s')
    handler.setFormatter(formatter)

    logger.addHandler(handler)
    return logger


def render_template(_path: str, **variables) -> str:
    if not os.path.exists(_path):
        raise FileNotFoundError(f"The file {_path} does not exist.")

    env = Environment(loader=FileSystemLoader(os.path.dirname(_path)), trim_blocks=True, lstrip_blocks=True)
    env.filters['percent'] = lambda value: f'{value:.1f}%'
    template = env.get_template(os.path.basename(_path))
    return template.render(**variables)


def render_markdown_template(_name: str, **variables) -> str:
    path = os.path.join(MARKDOWN_TEMPLATES_DIR, f'{_name}.jinja')
    return render_template(path, **variables)


@contextmanager
def timer(prefix='', *, stats: Optional[Dict[str, float]] = None, logger: Optional[Logger] = None):
    started = time.time()
    try:
        yield
    finally:
        duration = time.time() - started

        if stats is not None:
            stats['duration'] = duration

        if logger is not None:
            logger.info(f'{prefix} in {duration:.3f}s')
