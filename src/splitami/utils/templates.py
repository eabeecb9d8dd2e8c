"""Template rendering utilities."""

import logging
import re
from typing import Any
from jinja2 import Environment, BaseLoader, StrictUndefined, TemplateError

from splitami.errors import InvalidInput


logger = logging.getLogger(__name__)

IMAGE_NAME_MAX_LENGTH = 128
_INVALID_NAME_CHARS = re.compile(r"[^A-Za-z0-9 ()\[\]./\-'@_]")


class StringTemplateLoader(BaseLoader):
    """Template loader for string templates."""

    def __init__(self, template_string: str):
        self.template_string = template_string

    def get_source(self, environment, template):
        return self.template_string, None, lambda: True


def render_template(template_str: str, **context: Any) -> str:
    """Render a Jinja2 template string with given context."""
    try:
        env = Environment(
            loader=StringTemplateLoader(template_str),
            undefined=StrictUndefined,
        )
        template = env.get_template("")
        return template.render(**context)

    except TemplateError as e:
        logger.error(f"Template rendering error: {e}")
        raise InvalidInput(f"Cannot render template {template_str!r}: {e}") from e


def sanitize_image_name(name: str) -> str:
    """Replace characters EC2 rejects in image names and cap the length."""
    sanitized = _INVALID_NAME_CHARS.sub("-", name.strip())
    sanitized = sanitized[:IMAGE_NAME_MAX_LENGTH]
    if len(sanitized) < 3:
        raise InvalidInput(f"Image name too short after sanitizing: {name!r}")
    return sanitized
