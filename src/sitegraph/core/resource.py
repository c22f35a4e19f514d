from __future__ import annotations

import enum
import os
import weakref
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sitegraph.models import PageMeta

if TYPE_CHECKING:
    from sitegraph.core.phase import BuildPhase


class ResourceState(enum.Enum):
    PENDING = "pending"
    LOADED = "loaded"
    DELETED = "deleted"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass
class FrontMatterBlock:
    loaded: bool = False
    data: dict[str, Any] = field(default_factory=dict)
    meta: PageMeta = field(default_factory=PageMeta)
    # size of the matter block (delimiters included) in bytes
    length: int = 0


@dataclass
class Document:
    """Parsed body of a resource. ``root`` is whatever the markdown engine returns."""

    loaded: bool = False
    loaded_at: datetime | None = None
    root: Any = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def set_metadata(self, key: str, value: Any) -> None:
        self.metadata[key] = value


class Resource:
    """A file tracked by the build, either a content input or a generated output.

    Instances are created and memoized by ``ResourceRegistry``; never construct
    one directly for a path that the registry may already know about.
    """

    def __init__(self, full_path: str) -> None:
        self._full_path = full_path
        self.state = ResourceState.PENDING
        self.error: Exception | None = None

        self.is_index = False
        self.needs_index = False
        self.is_parametric = False
        self.link = ""

        self.front_matter = FrontMatterBlock()
        self.document = Document()
        self.metadata: dict[str, Any] = {}

        self.param_values: list[str] = []
        self.param_name = ""

        self.assets: list[Resource] = []
        self.produced_by: Any = None
        self.produced_at: BuildPhase | None = None

        self._source: weakref.ref[Resource] | None = None
        self._asset_of: weakref.ref[Resource] | None = None
        self._info: os.stat_result | None = None

    def __repr__(self) -> str:
        return f"Resource({self._full_path!r}, state={self.state.value})"

    @property
    def full_path(self) -> str:
        return self._full_path

    # Back references are weak: they are for lookup only, the registry owns lifetimes.
    @property
    def source(self) -> Resource | None:
        return self._source() if self._source is not None else None

    @source.setter
    def source(self, value: Resource | None) -> None:
        self._source = weakref.ref(value) if value is not None else None

    @property
    def asset_of(self) -> Resource | None:
        return self._asset_of() if self._asset_of is not None else None

    @asset_of.setter
    def asset_of(self, value: Resource | None) -> None:
        self._asset_of = weakref.ref(value) if value is not None else None

    @property
    def meta(self) -> PageMeta:
        return self.front_matter.meta

    @property
    def ext(self) -> str:
        return os.path.splitext(self._full_path)[1]

    @property
    def name(self) -> str:
        return os.path.basename(self._full_path)

    @property
    def dir_name(self) -> str:
        return os.path.dirname(self._full_path)

    def without_ext(self, all_extensions: bool = False) -> str:
        from sitegraph.core.paths import strip_extensions

        return strip_extensions(self._full_path, all_extensions)

    def rel_path(self, root: str) -> str:
        """Path relative to *root* in posix form, or ``""`` if outside it."""
        try:
            return Path(self._full_path).relative_to(root).as_posix()
        except ValueError:
            return ""

    def info(self) -> os.stat_result:
        if self._info is None:
            self._info = os.stat(self._full_path)
        return self._info

    def exists(self) -> bool:
        return os.path.exists(self._full_path)

    def read_bytes(self) -> bytes:
        return Path(self._full_path).read_bytes()

    def read_all(self) -> str:
        """Body of the file after the front matter block."""
        raw = self.read_bytes()
        return raw[self.front_matter.length :].decode("utf-8")

    def ensure_dir(self) -> None:
        os.makedirs(self.dir_name, exist_ok=True)

    def fail(self, error: Exception) -> None:
        self.error = error
        self.state = ResourceState.FAILED

    def add_param(self, value: str) -> Resource:
        self.param_values.append(value)
        return self

    def add_params(self, values: list[str]) -> Resource:
        self.param_values.extend(values)
        return self

    def set_metadata(self, key: str, value: Any, *kvpairs: Any) -> str:
        self.metadata[key] = value
        for i in range(0, len(kvpairs) - 1, 2):
            self.metadata[str(kvpairs[i])] = kvpairs[i + 1]
        return ""

    def reset(self) -> None:
        """Forget everything derived from the file so it is processed from scratch."""
        self.state = ResourceState.PENDING
        self.error = None
        self._info = None
        self.is_index = False
        self.needs_index = False
        self.is_parametric = False
        self.link = ""
        self.front_matter = FrontMatterBlock()
        self.document = Document()
        self.metadata = {}
        self.param_values = []
        self.param_name = ""
        self.assets = []
        self.asset_of = None
