"""Template rendering utilities."""

import logging
import shlex
from typing import Any, Dict, List
from jinja2 import Environment, BaseLoader, StrictUndefined, TemplateError


logger = logging.getLogger(__name__)


class StringTemplateLoader(BaseLoader):
    """Template loader for string templates."""

    def __init__(self, template_string: str):
        self.template_string = template_string

    def get_source(self, environment, template):
        return self.template_string, None, lambda: True


def render_template(template_str: str, **context: Any) -> str:
    """Render a Jinja2 template string with given context.

    Undefined variables are an error so a stage cannot silently read a
    build tag it did not declare.
    """
    try:
        env = Environment(
            loader=StringTemplateLoader(template_str),
            undefined=StrictUndefined,
        )
        template = env.get_template("")
        return template.render(**context)
    except TemplateError as e:
        logger.error(f"Template rendering error: {e}")
        raise


def render_command(template_str: str, **context: Any) -> List[str]:
    """Render a command template and split it into argv."""
    return shlex.split(render_template(template_str, **context))


def merge_dicts(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_dicts(result[key], value)
        else:
            result[key] = value

    return result
