from formflow.compiler.mermaid import generate_mermaid
from formflow.compiler.parser import parse_template, parse_template_yaml
from formflow.compiler.registry import TemplateRegistry, load_template
from formflow.compiler.validator import TemplateIssue, format_issues, validate_template

__all__ = [
    "TemplateIssue",
    "TemplateRegistry",
    "format_issues",
    "generate_mermaid",
    "load_template",
    "parse_template",
    "parse_template_yaml",
    "validate_template",
]
