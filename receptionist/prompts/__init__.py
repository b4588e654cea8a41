"""Load prompt templates from this directory."""

from pathlib import Path
from string import Template

_DIR = Path(__file__).parent


def load_prompt(name: str) -> str:
    """Load a prompt by name (without extension). Returns the text stripped."""
    return (_DIR / f"{name}.txt").read_text().strip()


def render_prompt(name: str, **values: str) -> str:
    """Fill the $placeholders of a prompt.  JSON braces in the template are left alone."""
    return Template(load_prompt(name)).substitute(values)
