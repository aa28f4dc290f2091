from __future__ import annotations

from pathlib import Path
from string import Template

from relay.collaborators import InstructionsProvider
from relay.session import CallContext


def load_prompt(filename: str) -> str:
    """Load a prompt text file shipped with the codebase."""

    prompt_dir = Path(__file__).resolve().parent
    path = prompt_dir / filename
    if not path.exists():
        raise RuntimeError(f"Prompt file not found: {filename}")
    return path.read_text(encoding="utf-8").strip() + "\n"


def render_instructions(template: str, context: CallContext) -> str:
    # safe_substitute leaves unknown placeholders untouched.
    return Template(template).safe_substitute(
        candidate_name=context.name,
        location=context.location,
        product=context.product,
    )


def build_instructions_provider(filename: str) -> InstructionsProvider:
    """Return a provider that renders ``filename`` for each call's context."""

    template = load_prompt(filename)

    def provide(context: CallContext) -> str:
        return render_instructions(template, context)

    return provide
