"""Render turns into a single prompt-ready text block.

Every style consumes the same selected turns and the same rewrite step; they
only differ in how a block is laid out.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional, Sequence

from core.config import FormattingConfig, RoleTemplate
from core.models import Turn
from core.rules_engine import CompiledRule, apply_compiled, compile_rules

BLOCK_SEPARATOR = "\n\n"


def _wrap(template: RoleTemplate, body: str) -> str:
    if not template.wrapper_tag:
        return body
    tag = f"{template.wrapper_tag}_message"
    return f"<{tag}>\n{body}\n</{tag}>"


def _with_header(template: RoleTemplate, block: str) -> str:
    if not template.header_text:
        return block
    return f"{template.header_text}\n{block}"


def _format_roleplay(template: RoleTemplate, content: str, index: int) -> str:
    return _with_header(template, _wrap(template, f"{template.display_name}: {content}"))


def _format_tagged(template: RoleTemplate, content: str, index: int) -> str:
    return _with_header(template, _wrap(template, content))


def _format_transcript(template: RoleTemplate, content: str, index: int) -> str:
    return f"{template.display_name}: {content}"


def _format_numbered(template: RoleTemplate, content: str, index: int) -> str:
    return f"{index}. {template.display_name}: {content}"


def _format_quoted(template: RoleTemplate, content: str, index: int) -> str:
    quoted = "\n".join(f"> {line}" if line else ">" for line in content.split("\n"))
    return f"{template.display_name}:\n{quoted}"


def _format_bracketed(template: RoleTemplate, content: str, index: int) -> str:
    return f"[{template.display_name}] {content}"


_STYLES: Dict[str, Callable[[RoleTemplate, str, int], str]] = {
    "roleplay": _format_roleplay,
    "tagged": _format_tagged,
    "transcript": _format_transcript,
    "numbered": _format_numbered,
    "quoted": _format_quoted,
    "bracketed": _format_bracketed,
}


def _renderer(style: str) -> Callable[[RoleTemplate, str, int], str]:
    try:
        return _STYLES[style]
    except KeyError:
        raise ValueError(f"Unsupported history style: {style}") from None


def _render_blocks(
    turns: Iterable[Turn],
    config: FormattingConfig,
    style: str,
    compiled: Sequence[CompiledRule],
    start: int = 1,
) -> List[str]:
    render = _renderer(style)
    blocks: List[str] = []
    for index, turn in enumerate(turns, start=start):
        content = apply_compiled(turn.text, compiled, turn.speaker)
        blocks.append(render(config.template_for(turn.speaker), content, index))
    return blocks


def format_turn(turn: Turn, config: FormattingConfig, style: Optional[str] = None, index: int = 1) -> str:
    """Render a single turn as one block."""

    compiled = compile_rules(config.rewrite_rules)
    block = _render_blocks([turn], config, style or config.style, compiled, start=index)[0]
    return block.strip()


def format_history(turns: Sequence[Turn], config: FormattingConfig, style: Optional[str] = None) -> str:
    """Render turns in order, joined by blank lines and stripped."""

    # Resolve the style first so a bad name fails even for an empty history.
    _renderer(style or config.style)
    if not turns:
        return ""
    compiled = compile_rules(config.rewrite_rules)
    blocks = _render_blocks(turns, config, style or config.style, compiled)
    return BLOCK_SEPARATOR.join(blocks).strip()
