"""Template Renderer: one build-context directory per version.

Every top-level file of the template directory is a Jinja2 template and
produces the file of the same name in the output directory. Templates see::

    version        original text of the version ("12.3")
    maintainer     maintainer string
    install_tools  True for versions at or above the tool-install cutoff
    tools          space separated tool list

All templates of one version render concurrently. The first failure fails
the whole render; files already written by sibling templates are left as
they are (the build directory is scratch space).
"""

from __future__ import annotations

import logging
import re
import shutil
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

import jinja2

from mimikry.errors import ConfigurationError, TemplateRenderError
from mimikry.models.build import BuildContext
from mimikry.models.config import RendererOptions
from mimikry.models.versioning import InvalidVersionError, Version

logger = logging.getLogger(__name__)

DOCKERFILE = "Dockerfile"

# "FROM postgres:{{ version }}" -> "postgres"
_FROM_RE = re.compile(
    r"^\s*FROM\s+(?:--platform=\S+\s+)?(?P<image>[^\s:@{]+)[:@]",
    re.MULTILINE | re.IGNORECASE,
)


def detect_source_repository(dockerfile_source: str) -> str | None:
    """Return the upstream repository named by the first ``FROM`` line."""
    match = _FROM_RE.search(dockerfile_source)
    if match is None:
        return None
    image = match["image"]
    # Docker Hub official images are addressed without the library/ prefix.
    return image.removeprefix("docker.io/").removeprefix("library/")


class TemplateRenderer:
    """Renders a template set into per-version build directories.

    Parameters
    ----------
    template_dir:
        Directory holding the templates. It must contain a ``Dockerfile``.
    options:
        Renderer policy: tool-install cutoff, tool list, worker count.

    Raises
    ------
    ConfigurationError
        If the directory is missing, has no ``Dockerfile`` template, the
        cutoff is not a version, or a template fails to compile.
    """

    def __init__(self, template_dir: Path, options: RendererOptions | None = None) -> None:
        self.template_dir = Path(template_dir)
        self.options = options or RendererOptions()

        if not self.template_dir.is_dir():
            raise ConfigurationError(f"template directory {self.template_dir} does not exist")

        try:
            self._cutoff = Version.parse(self.options.install_tools_cutoff)
        except InvalidVersionError as exc:
            raise ConfigurationError(f"parse tool-install cutoff: {exc}") from exc

        self._env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(self.template_dir)),
            undefined=jinja2.StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )
        names = sorted(
            path.name for path in self.template_dir.iterdir() if path.is_file()
        )
        if DOCKERFILE not in names:
            raise ConfigurationError(
                f"template directory {self.template_dir} has no {DOCKERFILE} template"
            )

        self._templates: dict[str, jinja2.Template] = {}
        for name in names:
            try:
                self._templates[name] = self._env.get_template(name)
            except (jinja2.TemplateError, UnicodeDecodeError) as exc:
                raise TemplateRenderError(f"parse template {name!r}: {exc}") from exc
        logger.debug("Loaded %d templates from %s", len(names), self.template_dir)

    @property
    def template_names(self) -> list[str]:
        return list(self._templates)

    def source_repository(self) -> str | None:
        """Upstream repository referenced by the Dockerfile template, if any."""
        path = self.template_dir / DOCKERFILE
        return detect_source_repository(path.read_text(encoding="utf-8"))

    def installs_tools(self, version: Version) -> bool:
        return version >= self._cutoff

    def context_for(self, version: Version, maintainer: str, directory: Path) -> BuildContext:
        return BuildContext(
            directory=directory,
            version=version,
            maintainer=maintainer,
            install_tools=self.installs_tools(version),
            tools=self.options.tools,
        )

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self, version: Version, maintainer: str, output_dir: Path) -> BuildContext:
        """Render every template for ``version`` into ``output_dir``.

        Returns the :class:`BuildContext` that was rendered.
        """
        context = self.context_for(version, maintainer, Path(output_dir))
        self.render_context(context)
        return context

    def render_context(self, context: BuildContext) -> None:
        data = context.template_data()
        workers = self.options.max_workers or len(self._templates)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="render") as pool:
            futures = {
                pool.submit(self._render_one, name, template, data, context.directory): name
                for name, template in self._templates.items()
            }
            for future in as_completed(futures):
                try:
                    future.result()
                except Exception:
                    for pending in futures:
                        pending.cancel()
                    raise

        logger.debug(
            "Rendered %d templates for %s into %s",
            len(self._templates),
            context.version,
            context.directory,
        )

    def _render_one(
        self,
        name: str,
        template: jinja2.Template,
        data: dict[str, object],
        output_dir: Path,
    ) -> Path:
        output_path = output_dir / name
        try:
            rendered = template.render(**data)
        except Exception as exc:
            # Template expressions can raise arbitrary Python errors.
            raise TemplateRenderError(f"execute template {name!r}: {exc}") from exc

        try:
            output_path.write_text(rendered, encoding="utf-8")
            shutil.copymode(self.template_dir / name, output_path)
        except OSError as exc:
            raise TemplateRenderError(f"write template {name!r} to {output_path}: {exc}") from exc
        return output_path
