"""
Where task notes and their metadata live.

``MetadataStore`` and ``ArtifactStore`` are the two interfaces the
lifecycle controller works against. ``Vault`` implements both over a
directory of Markdown notes whose metadata is the leading YAML front
matter block.
"""

import re
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Callable, Iterator

import yaml

from .naming import split_name
from .record import TaskRecord

FRONT_MATTER_REGEX = re.compile(
    r"\A---[ \t]*\r?\n(.*?)(?:\r?\n)?^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)


class StoreError(RuntimeError):
    """A note could not be read, written, copied or moved."""


@dataclass(frozen=True)
class Artifact:
    """A note, identified by its vault-relative POSIX path."""

    path: str

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def parent(self) -> str:
        parent = str(PurePosixPath(self.path).parent)
        return "" if parent == "." else parent

    @property
    def stem(self) -> str:
        return split_name(self.name)[0]

    @property
    def extension(self) -> str:
        return split_name(self.name)[1]


def join_path(parent: str, name: str) -> str:
    return f"{parent}/{name}" if parent else name


def normalize_folder(folder: str) -> str:
    """'\\Tasks\\Daily/' → 'Tasks/Daily'"""
    return (folder or "").replace("\\", "/").strip().strip("/")


class MetadataStore(ABC):
    @abstractmethod
    def read(self, artifact: Artifact) -> TaskRecord: ...

    @abstractmethod
    def mutate(
        self, artifact: Artifact, update_fn: Callable[[TaskRecord], TaskRecord]
    ) -> TaskRecord:
        """Read the record, apply ``update_fn`` and persist the result."""


class ArtifactStore(ABC):
    @abstractmethod
    def exists(self, path: str) -> bool: ...

    @abstractmethod
    def get(self, path: str) -> Artifact: ...

    @abstractmethod
    def copy(self, artifact: Artifact, dest_path: str) -> Artifact: ...

    @abstractmethod
    def rename(self, artifact: Artifact, dest_path: str) -> Artifact: ...

    @abstractmethod
    def delete(self, artifact: Artifact) -> None: ...

    @abstractmethod
    def ensure_folder(self, path: str) -> None: ...


def split_front_matter(text: str) -> tuple[dict, str]:
    """
    Split note text into (front matter mapping, body).

    Text without a leading '---' block has empty front matter and is all
    body. Raises StoreError when the block is not a YAML mapping.
    """
    match = FRONT_MATTER_REGEX.match(text)
    if not match:
        return {}, text
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        raise StoreError(f"malformed front matter: {e}") from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise StoreError("front matter is not a mapping")
    return data, text[match.end():]


def join_front_matter(data: dict, body: str) -> str:
    if not data:
        return body
    dumped = yaml.safe_dump(
        data, sort_keys=False, allow_unicode=True, default_flow_style=False
    )
    return f"---\n{dumped}---\n{body}"


class Vault(MetadataStore, ArtifactStore):
    def __init__(self, root: str | Path):
        self.root = Path(root).expanduser().resolve()

    def __repr__(self) -> str:
        return f"Vault({str(self.root)!r})"

    # ---- paths ----

    def _resolve(self, path: str) -> Path:
        relative = PurePosixPath(path.replace("\\", "/"))
        if relative.is_absolute() or not relative.parts:
            raise StoreError(f"not a vault-relative path: {path!r}")
        full = (self.root / relative).resolve()
        if full != self.root and self.root not in full.parents:
            raise StoreError(f"path escapes the vault: {path!r}")
        return full

    def relative(self, full: Path) -> str:
        return full.resolve().relative_to(self.root).as_posix()

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def get(self, path: str) -> Artifact:
        full = self._resolve(path)
        if not full.is_file():
            raise StoreError(f"no note at {path!r}")
        return Artifact(self.relative(full))

    def iter_artifacts(self, folder: str = "") -> Iterator[Artifact]:
        base = self._resolve(folder) if normalize_folder(folder) else self.root
        for full in sorted(base.rglob("*.md")):
            if full.is_file():
                yield Artifact(self.relative(full))

    # ---- notes ----

    def read_note(self, artifact: Artifact) -> tuple[dict, str]:
        full = self._resolve(artifact.path)
        try:
            text = full.read_text(encoding="utf-8")
        except OSError as e:
            raise StoreError(f"cannot read {artifact.path}: {e}") from e
        return split_front_matter(text)

    def write_note(self, artifact: Artifact, data: dict, body: str) -> None:
        full = self._resolve(artifact.path)
        try:
            full.write_text(join_front_matter(data, body), encoding="utf-8")
        except OSError as e:
            raise StoreError(f"cannot write {artifact.path}: {e}") from e

    def create(
        self, path: str, record: TaskRecord | None = None, body: str = ""
    ) -> Artifact:
        full = self._resolve(path)
        if full.exists():
            raise StoreError(f"{path!r} already exists")
        self.ensure_folder(str(PurePosixPath(path).parent))
        artifact = Artifact(self.relative(full))
        self.write_note(artifact, (record or TaskRecord()).to_mapping(), body)
        return artifact

    # ---- MetadataStore ----

    def read(self, artifact: Artifact) -> TaskRecord:
        data, _ = self.read_note(artifact)
        return TaskRecord.from_mapping(data)

    def mutate(
        self, artifact: Artifact, update_fn: Callable[[TaskRecord], TaskRecord]
    ) -> TaskRecord:
        data, body = self.read_note(artifact)
        record = update_fn(TaskRecord.from_mapping(data))
        self.write_note(artifact, record.to_mapping(), body)
        return record

    # ---- ArtifactStore ----

    def ensure_folder(self, path: str) -> None:
        folder = normalize_folder(path)
        if not folder or folder == ".":
            return
        try:
            self._resolve(folder).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"cannot create folder {folder}: {e}") from e

    def copy(self, artifact: Artifact, dest_path: str) -> Artifact:
        source = self._resolve(artifact.path)
        dest = self._resolve(dest_path)
        if dest.exists():
            raise StoreError(f"{dest_path!r} already exists")
        self.ensure_folder(str(PurePosixPath(dest_path).parent))
        try:
            shutil.copyfile(source, dest)
        except OSError as e:
            raise StoreError(f"cannot copy {artifact.path} to {dest_path}: {e}") from e
        return Artifact(self.relative(dest))

    def rename(self, artifact: Artifact, dest_path: str) -> Artifact:
        source = self._resolve(artifact.path)
        dest = self._resolve(dest_path)
        if dest.exists():
            raise StoreError(f"{dest_path!r} already exists")
        self.ensure_folder(str(PurePosixPath(dest_path).parent))
        try:
            source.rename(dest)
        except OSError as e:
            raise StoreError(f"cannot move {artifact.path} to {dest_path}: {e}") from e
        return Artifact(self.relative(dest))

    def delete(self, artifact: Artifact) -> None:
        full = self._resolve(artifact.path)
        try:
            full.unlink()
        except OSError as e:
            raise StoreError(f"cannot delete {artifact.path}: {e}") from e
