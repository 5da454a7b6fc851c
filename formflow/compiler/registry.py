"""Load and cache validated templates from a templates directory."""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from formflow.compiler.parser import parse_template, parse_template_yaml
from formflow.compiler.validator import ensure_valid
from formflow.errors import MalformedTemplate, UnknownTemplate

if TYPE_CHECKING:
    from formflow.types import FormTemplate

logger = logging.getLogger(__name__)


def load_template(source: str | dict) -> FormTemplate:
    """Parse and validate a template; MalformedTemplate on any structural error."""
    template = parse_template_yaml(source) if isinstance(source, str) else parse_template(source)
    for issue in ensure_valid(template):
        logger.warning("Template %s: %s", template.id, issue)
    return template


class TemplateRegistry:
    """Published templates by id.

    Templates are read from ``<templates_dir>/<id>.yaml`` on first use, or
    registered directly.
    """

    def __init__(self, templates_dir: str | Path | None = None):
        self.templates_dir = Path(templates_dir) if templates_dir else None
        self._templates: dict[str, FormTemplate] = {}
        self._lock = threading.Lock()

    def register(self, template: FormTemplate) -> FormTemplate:
        ensure_valid(template)
        with self._lock:
            self._templates[template.id] = template
        return template

    def get(self, template_id: str) -> FormTemplate:
        with self._lock:
            cached = self._templates.get(template_id)
        if cached:
            return cached

        path = self._path_for(template_id)
        if path is None or not path.exists():
            raise UnknownTemplate(f'Template "{template_id}" not found', {"template": template_id})

        try:
            template = load_template(path.read_text(encoding="utf-8"))
        except MalformedTemplate:
            logger.error("Rejected malformed template %s", path)
            raise
        if template.id != template_id:
            raise MalformedTemplate(
                f'Template file {path.name} declares id "{template.id}", expected "{template_id}"'
            )

        logger.info("Loaded template %s (%d steps)", template.id, len(template.steps))
        with self._lock:
            self._templates[template_id] = template
        return template

    def available(self) -> list[str]:
        names = set(self._templates)
        if self.templates_dir and self.templates_dir.is_dir():
            names.update(p.stem for p in self.templates_dir.glob("*.yaml"))
        return sorted(names)

    def _path_for(self, template_id: str) -> Path | None:
        if self.templates_dir is None:
            return None
        return self.templates_dir / f"{template_id}.yaml"
