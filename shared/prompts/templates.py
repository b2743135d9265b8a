"""
Prompt templates for single-turn generator calls.

A template pairs an optional system prompt with a user prompt containing
{variable} placeholders, and builds the role-tagged message list the text
generator takes. Literal braces (JSON examples) are written doubled.
"""

from string import Formatter
from typing import Any, Dict, List, Optional, Set

from shared.utils.exceptions import PromptTemplateError


class PromptTemplate:
    """User prompt with {variable} placeholders, plus an optional system prompt."""

    def __init__(
        self,
        template: str,
        name: str,
        system: Optional[str] = None,
        defaults: Optional[Dict[str, Any]] = None,
    ):
        self.template = template.strip()
        self.name = name
        self.system = system
        self.defaults = defaults or {}
        self.required_vars: Set[str] = {
            field_name
            for _, field_name, _, _ in Formatter().parse(self.template)
            if field_name
        }

    def render(self, **kwargs: Any) -> str:
        """
        Fill the placeholders.

        Raises:
            PromptTemplateError: A placeholder has no value
        """
        values = {**self.defaults, **kwargs}
        missing = self.required_vars - values.keys()
        if missing:
            raise PromptTemplateError(template_name=self.name, missing_vars=sorted(missing))
        return self.template.format(**values)

    def messages(self, **kwargs: Any) -> List[Dict[str, str]]:
        """System message (if any) followed by the rendered user message."""
        messages = []
        if self.system:
            messages.append({"role": "system", "content": self.system})
        messages.append({"role": "user", "content": self.render(**kwargs)})
        return messages

    def __repr__(self) -> str:
        return f"PromptTemplate(name='{self.name}', vars={sorted(self.required_vars)})"
