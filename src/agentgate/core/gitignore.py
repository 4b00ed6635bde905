"""
.gitignore awareness for Read calls.

Files a project ignores (build output, local secrets, vendored caches) are
usually not something an agent should read. GitignoreMatcher loads the
project's top-level .gitignore with pathspec's git-compatible rules and
answers whether a path is ignored. The file is loaded on first use and
re-parsed when its mtime, size or inode changes.

Usage:
    matcher = GitignoreMatcher("/project")
    matcher.should_ignore("/project/build/app.js")   # True if "build/" is ignored
"""
import logging
import os
import posixpath
import threading
from pathlib import Path
from typing import Optional, Union

import pathspec

from .bash_parser import is_within_directory

logger = logging.getLogger(__name__)

GITIGNORE_FILE_NAME = ".gitignore"


class GitignoreMatcher:
    """Ignore rules of one project directory."""

    def __init__(self, project_root: Union[Path, str]) -> None:
        self._project_root = posixpath.normpath(os.path.abspath(str(project_root)))
        self._spec: Optional[pathspec.GitIgnoreSpec] = None
        self._stamp: Optional[tuple[int, int, int]] = None
        self._lock = threading.Lock()

    @property
    def gitignore_path(self) -> Path:
        return Path(self._project_root) / GITIGNORE_FILE_NAME

    def _load(self) -> Optional[pathspec.GitIgnoreSpec]:
        path = self.gitignore_path
        with self._lock:
            try:
                stat = path.stat()
            except FileNotFoundError:
                self._spec, self._stamp = None, None
                return None
            except OSError as e:
                logger.warning(f"Cannot stat {path}: {e}")
                return self._spec

            stamp = (stat.st_mtime_ns, stat.st_size, stat.st_ino)
            if stamp == self._stamp:
                return self._spec

            try:
                lines = path.read_text(encoding="utf-8").splitlines()
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Cannot read {path}: {e}")
                return self._spec

            self._spec = pathspec.GitIgnoreSpec.from_lines(lines)
            self._stamp = stamp
            logger.debug(f"Loaded {len(lines)} ignore rule line(s) from {path}")
            return self._spec

    def should_ignore(self, file_path: str) -> bool:
        """
        Check whether the project ignores a file.

        Relative paths are resolved against the project root. Paths outside
        the project are never ignored here; the deny list covers those.

        Args:
            file_path: Path from the tool input.

        Returns:
            True if a .gitignore rule matches the path.
        """
        if not file_path:
            return False
        spec = self._load()
        if spec is None:
            return False

        path = os.path.expanduser(file_path)
        if not posixpath.isabs(path):
            path = posixpath.join(self._project_root, path)
        path = posixpath.normpath(path)
        if path == self._project_root or not is_within_directory(path, self._project_root):
            return False
        return spec.match_file(posixpath.relpath(path, self._project_root))
