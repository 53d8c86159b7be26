"""Whisker theme — template/asset fallback chain and the view cache.

User templates (``templates_dir``) take priority.  When a template is not
found there, lookup falls through to the bundled default theme.  Same
pattern for static assets.

Compiled templates are kept in ``ViewCache``, keyed by template name and
loaded from disk the first time each name is requested.

"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from kida import Environment, Template

    from whisker.config import WhiskerConfig


def _bundled_theme_path() -> Path:
    """Return the absolute path to the bundled default theme."""
    return Path(__file__).parent / "default"


def get_template_dirs(config: WhiskerConfig) -> list[Path]:
    """Return template directories in priority order.

    Returns:
        ``[user_templates_dir, bundled_default_templates]`` (user dir only
        when configured).

    """
    bundled = _bundled_theme_path() / "templates"
    dirs: list[Path] = []
    if config.templates_dir is not None and config.templates_dir != bundled:
        dirs.append(config.templates_dir)
    dirs.append(bundled)
    return dirs


def get_asset_dirs(config: WhiskerConfig) -> list[Path]:
    """Return static asset directories in priority order.

    Returns:
        ``[user_static_dir, bundled_default_assets]`` (user dir only when
        configured).

    """
    bundled = _bundled_theme_path() / "assets"
    dirs: list[Path] = []
    if config.static_dir is not None and config.static_dir != bundled:
        dirs.append(config.static_dir)
    dirs.append(bundled)
    return dirs


class ViewCache:
    """Compiled Kida templates keyed by name, populated on first use.

    Args:
        template_dirs: Search path, highest priority first.

    """

    __slots__ = ("_env", "_views")

    def __init__(self, template_dirs: list[Path]) -> None:
        from kida import Environment, FileSystemLoader

        self._env: Environment = Environment(
            loader=FileSystemLoader(template_dirs),
            autoescape=True,
        )
        self._views: dict[str, Template] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._views

    def __len__(self) -> int:
        return len(self._views)

    def get(self, name: str) -> Template:
        """Return the compiled template *name*, loading it on a miss."""
        view = self._views.get(name)
        if view is None:
            view = self._env.get_template(name)
            self._views[name] = view
        return view

    def render(self, name: str, **context: Any) -> str:
        """Render template *name* with *context*."""
        return self.get(name).render(**context)

    def clear(self) -> None:
        """Forget every compiled template; the next ``get()`` reloads from disk."""
        self._views.clear()
