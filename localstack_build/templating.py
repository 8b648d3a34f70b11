"""Jinja2 template rendering for generated build files."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from jinja2 import Environment, PackageLoader, StrictUndefined, select_autoescape


@lru_cache(maxsize=1)
def get_environment() -> Environment:
    """Return the shared template environment.

    XML templates are autoescaped; shell and Dockerfile templates are not.
    """
    return Environment(
        loader=PackageLoader("localstack_build", "templates"),
        autoescape=select_autoescape(
            enabled_extensions=("xml", "xml.j2"), default_for_string=False
        ),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def render(template_name: str, **context: Any) -> str:
    """Render a packaged template by name."""
    return get_environment().get_template(template_name).render(**context)


__all__ = ["get_environment", "render"]
