from __future__ import annotations

import fnmatch
import logging
import os
from collections.abc import Callable, Iterator

from pydantic import ValidationError

from sitegraph.core.errors import DiscoveryWalkError, FrontMatterParseError, ResourceIOError, SiteError
from sitegraph.core.paths import PAGE_EXTENSIONS
from sitegraph.core.ports.frontmatter import FrontMatterParser
from sitegraph.core.resource import FrontMatterBlock, Resource, ResourceState
from sitegraph.models import PageMeta

logger = logging.getLogger(__name__)

PathPredicate = Callable[[str], bool]


def matches_any(path: str, patterns: list[str]) -> bool:
    """True if the basename of *path* matches one of the glob *patterns*."""
    name = os.path.basename(path)
    return any(fnmatch.fnmatch(name, pattern) for pattern in patterns)


class ResourceRegistry:
    """Owns every ``Resource`` of a site, keyed by absolute path."""

    def __init__(
        self,
        front_matter_parser: FrontMatterParser | None = None,
        page_extensions: tuple[str, ...] = PAGE_EXTENSIONS,
    ) -> None:
        self._resources: dict[str, Resource] = {}
        self._parse_front_matter = front_matter_parser
        self._page_extensions = page_extensions

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and os.path.abspath(path) in self._resources

    def __len__(self) -> int:
        return len(self._resources)

    def __iter__(self) -> Iterator[Resource]:
        return iter(list(self._resources.values()))

    def get(self, path: str) -> Resource | None:
        return self._resources.get(os.path.abspath(path))

    def get_or_create(self, path: str) -> Resource:
        full_path = os.path.abspath(path)
        resource = self._resources.get(full_path)
        if resource is None:
            resource = Resource(full_path)
            self._resources[full_path] = resource
        return resource

    def load(self, resource: Resource) -> Resource:
        """Read and decode the front matter of a page resource.

        Non-page resources only get their stat info checked.
        """
        try:
            resource.info()
            if resource.ext in self._page_extensions and self._parse_front_matter is not None:
                raw = resource.read_bytes()
                data, rest = self._parse_front_matter(raw)
                resource.front_matter = FrontMatterBlock(
                    loaded=True,
                    data=data,
                    meta=PageMeta.model_validate(data),
                    length=len(raw) - len(rest),
                )
        except FileNotFoundError as e:
            resource.state = ResourceState.NOT_FOUND
            error = ResourceIOError(f"resource disappeared: {resource.full_path}", path=resource.full_path)
            resource.error = error
            raise error from e
        except OSError as e:
            error = ResourceIOError(f"cannot read {resource.full_path}: {e}", path=resource.full_path)
            resource.fail(error)
            raise error from e
        except ValidationError as e:
            error = FrontMatterParseError(f"invalid front matter in {resource.full_path}: {e}", path=resource.full_path)
            resource.fail(error)
            raise error from e
        except SiteError as e:
            if e.path is None:
                e.path = resource.full_path
            resource.fail(e)
            raise
        resource.state = ResourceState.LOADED
        return resource

    def reset(self, resource: Resource) -> Resource:
        resource.reset()
        return resource

    def remove(self, path: str) -> Resource | None:
        resource = self._resources.pop(os.path.abspath(path), None)
        if resource is not None:
            resource.state = ResourceState.DELETED
        return resource

    def walk(
        self,
        root: str,
        ignore_dir: PathPredicate | None = None,
        ignore_file: PathPredicate | None = None,
    ) -> list[Resource]:
        """Collect resources for every file under *root*, in sorted walk order."""

        def _raise(err: OSError) -> None:
            raise DiscoveryWalkError(f"cannot walk {err.filename}: {err.strerror}", path=err.filename) from err

        root = os.path.abspath(root)
        if not os.path.isdir(root):
            raise DiscoveryWalkError(f"content root {root} is not a directory", path=root)

        found: list[Resource] = []
        for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
            dirnames[:] = sorted(d for d in dirnames if not (ignore_dir and ignore_dir(os.path.join(dirpath, d))))
            for filename in sorted(filenames):
                full_path = os.path.join(dirpath, filename)
                if ignore_file and ignore_file(full_path):
                    continue
                found.append(self.get_or_create(full_path))
        logger.debug("Walked %s: %d file(s)", root, len(found))
        return found
