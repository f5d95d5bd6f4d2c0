"""Rewrite rule compilation and application (core domain)."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
import re
from typing import Iterable, List, Optional, Union

from core.models import Speaker

LOGGER = logging.getLogger(__name__)

DEFAULT_FLAGS = "g"

# Letters accepted for compatibility with JavaScript-style rule exports.
_FLAG_BITS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "u": 0,
    "d": 0,
}

_JS_GROUP_REF = re.compile(r"\$(\$|&|\d{1,2}|<\w+>)")


class RuleScope(str, Enum):
    """Which speaker's turns a rule applies to."""

    ALL = "all"
    USER_ONLY = "user"
    OTHER_ONLY = "other"

    def matches(self, speaker: Speaker) -> bool:
        if self is RuleScope.ALL:
            return True
        if self is RuleScope.USER_ONLY:
            return speaker is Speaker.USER
        return speaker is Speaker.OTHER


@dataclass(frozen=True)
class RewriteRule:
    """Find/replace rule as configured by the user."""

    pattern: str
    replacement: str = ""
    flags: str = DEFAULT_FLAGS
    enabled: bool = True
    scope: RuleScope = RuleScope.ALL
    trim_patterns: str = ""
    name: str = ""

    @property
    def label(self) -> str:
        return self.name or self.pattern


@dataclass(frozen=True)
class CompiledRule:
    """A rule that compiled and is ready to run."""

    rule: RewriteRule
    regex: re.Pattern
    template: str
    count: int
    trims: List[re.Pattern] = field(default_factory=list)


@dataclass(frozen=True)
class SkippedRule:
    """A rule that will not run, with the reason why."""

    rule: RewriteRule
    reason: str
    malformed: bool = True


CompileResult = Union[CompiledRule, SkippedRule]


def _parse_scope(raw: object) -> RuleScope:
    if isinstance(raw, RuleScope):
        return raw
    value = str(raw or "all").strip().lower()
    aliases = {
        "all": RuleScope.ALL,
        "both": RuleScope.ALL,
        "user": RuleScope.USER_ONLY,
        "user_only": RuleScope.USER_ONLY,
        "other": RuleScope.OTHER_ONLY,
        "other_only": RuleScope.OTHER_ONLY,
        "assistant": RuleScope.OTHER_ONLY,
    }
    scope = aliases.get(value)
    if scope is None:
        LOGGER.warning("Unknown rule scope %r, applying to all speakers", raw)
        return RuleScope.ALL
    return scope


def build_rewrite_rules(rules_config: Iterable[dict]) -> List[RewriteRule]:
    """Normalize raw rule dicts from settings into RewriteRule objects.

    Disabled rules are kept so the order shown to the user is preserved; the
    engine skips them at compile time.
    """

    rules: List[RewriteRule] = []
    for raw in rules_config or []:
        rules.append(
            RewriteRule(
                pattern=raw.get("pattern") or "",
                replacement=raw.get("replacement") or "",
                flags=raw.get("flags") or DEFAULT_FLAGS,
                enabled=bool(raw.get("enabled", True)),
                scope=_parse_scope(raw.get("scope")),
                trim_patterns=raw.get("trim_patterns") or "",
                name=raw.get("name") or "",
            )
        )
    return rules


def _parse_flags(flags: str) -> tuple[int, int]:
    """Return (re flags, replace count) for a JavaScript-style flag string."""

    bits = 0
    count = 1
    seen: set[str] = set()
    for letter in flags:
        if letter in seen:
            raise ValueError(f"duplicate flag {letter!r}")
        seen.add(letter)
        if letter == "g":
            count = 0
            continue
        if letter not in _FLAG_BITS:
            raise ValueError(f"unsupported flag {letter!r}")
        bits |= _FLAG_BITS[letter]
    return bits, count


def _translate_replacement(replacement: str, regex: re.Pattern) -> str:
    """Rewrite $1, $&, $<name> and $$ into Python template syntax.

    References to groups the pattern does not have follow JavaScript: $0 and
    $7 (with fewer groups) stay literal, $10 with one group is group 1 then
    "0", and $<name> is literal when the pattern has no named groups.
    """

    groups = regex.groups

    def _swap(match: re.Match) -> str:
        token = match.group(1)
        if token == "$":
            return "$"
        if token == "&":
            return r"\g<0>"
        if token.startswith("<"):
            if not regex.groupindex:
                return match.group(0)
            if token[1:-1] not in regex.groupindex:
                return ""
            return rf"\g{token}"
        if len(token) == 2 and 1 <= int(token) <= groups:
            return rf"\g<{int(token)}>"
        if 1 <= int(token[0]) <= groups:
            return rf"\g<{token[0]}>" + token[1:]
        return match.group(0)

    return _JS_GROUP_REF.sub(_swap, replacement)


def compile_rule(rule: RewriteRule) -> CompileResult:
    """Compile one rule, or explain why it is skipped."""

    if not rule.enabled:
        return SkippedRule(rule, "disabled", malformed=False)
    if not rule.pattern:
        return SkippedRule(rule, "empty pattern", malformed=False)

    try:
        bits, count = _parse_flags(rule.flags or DEFAULT_FLAGS)
    except ValueError as exc:
        return SkippedRule(rule, f"invalid flags: {exc}")

    try:
        regex = re.compile(rule.pattern, bits)
    except re.error as exc:
        return SkippedRule(rule, f"invalid pattern: {exc}")

    trims: List[re.Pattern] = []
    for line in rule.trim_patterns.splitlines():
        if not line.strip():
            continue
        try:
            trims.append(re.compile(line, bits))
        except re.error as exc:
            LOGGER.warning("Dropping trim pattern %r of rule %r: %s", line, rule.label, exc)

    return CompiledRule(
        rule=rule,
        regex=regex,
        template=_translate_replacement(rule.replacement, regex),
        count=count,
        trims=trims,
    )


def compile_rules(rules: Iterable[RewriteRule]) -> List[CompiledRule]:
    """Compile rules in order, logging and dropping the ones that cannot run."""

    compiled: List[CompiledRule] = []
    for rule in rules or []:
        result = compile_rule(rule)
        if isinstance(result, SkippedRule):
            if result.malformed:
                LOGGER.warning("Skipping rewrite rule %r: %s", rule.label, result.reason)
            else:
                LOGGER.debug("Skipping rewrite rule %r: %s", rule.label, result.reason)
            continue
        compiled.append(result)
    return compiled


def apply_compiled(text: str, compiled: Iterable[CompiledRule], speaker: Speaker) -> str:
    """Run compiled rules over text in order, each feeding the next.

    A rule that fails while substituting leaves the text as it was before
    that rule.
    """

    result = text or ""
    for item in compiled:
        if not item.rule.scope.matches(speaker):
            continue
        try:
            updated = item.regex.sub(item.template, result, count=item.count)
        except (re.error, IndexError) as exc:
            LOGGER.warning("Rewrite rule %r failed: %s", item.rule.label, exc)
            continue
        for trim in item.trims:
            # Trim patterns honor the rule's global flag like the main replace.
            updated = trim.sub("", updated, count=item.count)
        result = updated
    return result


def apply_rules(text: Optional[str], rules: Iterable[RewriteRule], speaker: Speaker) -> str:
    """Apply rewrite rules to text for a speaker; never raises on bad rules."""

    return apply_compiled(text or "", compile_rules(rules), speaker)
