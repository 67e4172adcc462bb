"""Jinja2 Async Environment"""

import logging
from os import path
from typing import Dict, Any, Optional
from jinja2 import Environment, DictLoader, select_autoescape
from aiofiles.os import scandir as async_scandir
from aiofiles import open as async_open

_LOGGER = logging.getLogger(__name__)

DEFAULT_TEMPLATE_DIR = path.join(path.dirname(path.abspath(__file__)), "templates")


class AsyncTemplateRenderer:
    """An asynchronous template renderer that caches templates per directory."""

    _cache: Dict[str, Dict[str, str]] = {}

    def __init__(self, template_dir: Optional[str] = None):
        self.template_dir = template_dir or DEFAULT_TEMPLATE_DIR

    @property
    def templates(self) -> Dict[str, str]:
        """Templates loaded from this renderer's directory."""
        return self._cache.setdefault(self.template_dir, {})

    async def fetch_templates(self) -> None:
        """Fetches all HTML files from the template directory."""
        templates = self.templates
        templates.clear()

        for file in await async_scandir(self.template_dir):
            if file.is_dir() or not file.name.endswith(".html"):
                continue

            template_path = path.join(self.template_dir, file.name)
            try:
                _LOGGER.debug("Fetching template %s from disk", file.name)
                async with async_open(template_path, mode="r", encoding="utf-8") as f:
                    templates[file.name] = await f.read()
            except OSError as e:
                _LOGGER.warning("Error reading template file %s: %s", file.name, e)

    async def render_template(self, template_name: str, **kwargs: Any) -> str:
        """Renders a template with the given parameters."""
        if not self.templates:
            await self.fetch_templates()

        if template_name not in self.templates:
            raise ValueError(f"Template '{template_name}' not found.")

        env = Environment(
            loader=DictLoader(self.templates),
            autoescape=select_autoescape(["html"]),
            enable_async=True,
        )
        template = env.get_template(template_name)
        return await template.render_async(**kwargs)


async def get_view(template: str, parameters: dict | None = None) -> str:
    """Returns the generated HTML of the requested view."""
    renderer = AsyncTemplateRenderer()
    return await renderer.render_template(f"{template}.html", **(parameters or {}))
