"""
Template-driven replacer.

Each non-empty paragraph of the document is treated as a Jinja2 template and
rendered against a context object. The expansion decides what becomes of the
paragraph:

- empty expansion: the paragraph is removed (or kept empty, see keep_empty())
- one line: the paragraph text is replaced
- several lines: the paragraph is duplicated, one copy per line

Use {{ nl() }} in a template to produce a line break, hence a new paragraph.
"""

import datetime
from typing import Any, Callable, Dict, List, Optional

import structlog
from jinja2 import Environment

from docxflow.models import DEFAULT_OPTIONS, ProcessingOptions

logger = structlog.get_logger(__name__)

ERROR_MARKER = "$$$$$$ ERROR $$$$$"


class TemplateReplacer:
    """
    Replacer rendering every paragraph as a template.

    Template errors never abort the rewrite: the paragraph is kept as written
    and an extra paragraph carrying the error message is added after it.
    """

    def __init__(
        self,
        context: Any = None,
        options: Optional[ProcessingOptions] = None,
        functions: Optional[Dict[str, Callable[..., Any]]] = None,
    ):
        options = options or DEFAULT_OPTIONS
        self.context = context
        self.verbose = options.verbose
        self.remove_empty = options.remove_empty_paragraphs
        # autoescape stays off: output is plain paragraph text, escaped later as XML
        self.env = Environment(autoescape=False)
        self._register_builtins()
        for name, function in (functions or {}).items():
            self.register_function(name, function)

    def _register_builtins(self) -> None:
        self.register_function("nl", lambda: "\n")
        self.register_function("date", lambda: datetime.date.today().isoformat())
        self.register_function("join", lambda items, delim="\n": delim.join(str(i) for i in items))
        self.register_function("remove_empty", self._set_remove_empty)
        self.register_function("keep_empty", self._set_keep_empty)

    def _set_remove_empty(self) -> str:
        self.remove_empty = True
        return ""

    def _set_keep_empty(self) -> str:
        self.remove_empty = False
        return ""

    def register_function(self, name: str, function: Optional[Callable[..., Any]]) -> None:
        """Makes `function` callable from templates. Empty names and None are ignored."""
        if not name or function is None:
            return
        if self.verbose:
            logger.debug(f"Registering template function {name}()", function=repr(function))
        self.env.globals[name] = function

    def _variables(self) -> Dict[str, Any]:
        if self.context is None:
            return {}
        if isinstance(self.context, dict):
            return dict(self.context)
        if hasattr(self.context, "model_dump"):
            return self.context.model_dump()
        return {"data": self.context, **getattr(self.context, "__dict__", {})}

    def __call__(self, container: str, text: str) -> List[str]:
        if text == "":
            return [""]

        try:
            rendered = self.env.from_string(text).render(self._variables())
        except Exception as e:
            message = f"{ERROR_MARKER} : {e} "
            logger.warning("Template expansion failed", container=container, paragraph=text, error=str(e))
            return [text, message]

        if rendered == "":
            return [] if self.remove_empty else [""]
        return rendered.split("\n")
