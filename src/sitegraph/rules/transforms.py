from __future__ import annotations

import fnmatch
import logging
import os
import subprocess
from typing import TYPE_CHECKING

import csscompressor

from sitegraph.core.errors import RuleError
from sitegraph.core.phase import BuildPhase
from sitegraph.core.ports.rule import TemplateFuncs

if TYPE_CHECKING:
    from sitegraph.core.resource import Resource
    from sitegraph.core.site import Site

logger = logging.getLogger(__name__)


class CssMinifier:
    """Minify ``.css`` files while copying them to the output tree.

    With ``command`` set the stylesheet is piped through that program instead,
    e.g. ``["lightningcss", "--minify"]``.
    """

    def __init__(
        self,
        command: list[str] | None = None,
        output_suffix: str = "",
        exclude_patterns: list[str] | None = None,
    ) -> None:
        self.command = list(command or [])
        self.output_suffix = output_suffix
        self.exclude_patterns = list(exclude_patterns if exclude_patterns is not None else ["*.min.css"])

    def __repr__(self) -> str:
        return f"CssMinifier(command={self.command!r}, output_suffix={self.output_suffix!r})"

    def phase(self) -> BuildPhase:
        return BuildPhase.TRANSFORM

    def depends_on(self) -> list[str]:
        return ["*.css"]

    def produces(self) -> list[str]:
        return [f"*{self.output_suffix}.css"]

    def targets_for(self, site: Site, resource: Resource) -> tuple[list[Resource], list[Resource]]:
        if resource.ext != ".css":
            return [], []
        rel = resource.rel_path(site.content_root)
        if not rel:
            return [], []
        for pattern in self.exclude_patterns:
            if fnmatch.fnmatch(rel, pattern) or fnmatch.fnmatch(resource.name, pattern):
                return [], []
        root, ext = os.path.splitext(rel)
        target = site.get_resource(os.path.join(site.output_dir, root + self.output_suffix + ext))
        return [resource], [target]

    def run(self, site: Site, inputs: list[Resource], targets: list[Resource], funcs: TemplateFuncs) -> None:
        if len(inputs) != 1 or len(targets) != 1:
            raise RuleError(
                f"CssMinifier needs exactly 1 input and 1 output, got {len(inputs)} and {len(targets)}", rule=self
            )
        inres, outres = inputs[0], targets[0]
        source = inres.read_bytes().decode("utf-8")
        minified = self._run_external(source) if self.command else csscompressor.compress(source)
        outres.ensure_dir()
        with open(outres.full_path, "w", encoding="utf-8") as f:
            f.write(minified)
        logger.debug("Minified %s -> %s (%d -> %d bytes)", inres.full_path, outres.full_path, len(source), len(minified))

    def _run_external(self, source: str) -> str:
        try:
            result = subprocess.run(self.command, input=source, capture_output=True, text=True, check=True)
        except FileNotFoundError as e:
            raise RuleError(f"css minifier command not found: {self.command[0]}", rule=self) from e
        except subprocess.CalledProcessError as e:
            raise RuleError(f"css minifier failed: {e.stderr.strip()}", rule=self) from e
        return result.stdout
