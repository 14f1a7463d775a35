"""Duration and sequence-pattern parsing.

Durations are ``<N>h<N>m<N>s`` strings (each part optional, canonical order
only) or bare integers meaning seconds. Sequence patterns describe a list of
timed phases::

    (25m work, 5m rest)x4, 20m "long break"

Parsing is best-effort and never raises: unknown characters are skipped, an
unmatched ``)`` ends the current item list and an unterminated group runs to
the end of the input.
"""

import re
from dataclasses import dataclass
from bt.common.logger import log
from bt.core.timer_state import Phase
from bt.util import format_duration

DEFAULT_LABEL = "Timer"

_DURATION_RE = re.compile(r"^(?:(\d+)h)?(?:(\d+)m)?(?:(\d+)s)?$", re.IGNORECASE)
_BARE_SECONDS_RE = re.compile(r"^\d+$")
# Longest duration-looking run at a position inside a pattern.
_DURATION_TOKEN_RE = re.compile(r"\d+h(?:\d+m)?(?:\d+s)?|\d+m(?:\d+s)?|\d+s|\d+", re.IGNORECASE)
_MULT_TOKEN_RE = re.compile(r"[xX](\d+)(?![a-zA-Z0-9_-])")
_WORD_RE = re.compile(r"[a-zA-Z0-9_-]+")

# Token kinds
LPAREN = "LPAREN"
RPAREN = "RPAREN"
COMMA = "COMMA"
MULT = "MULT"
LABEL = "LABEL"
DURATION = "DURATION"


#region === Durations ===

# Converts "1h20m", "90s", "45" and friends into seconds. Anything unrecognized gives 0, which callers treat as an
# invalid time format.
def parse_duration(text):
    if text is None:
        return 0
    text = str(text).strip()
    if not text:
        return 0
    if _BARE_SECONDS_RE.match(text):
        return int(text)
    match = _DURATION_RE.match(text)
    if match is None:
        return 0
    hours, minutes, seconds = (int(part) if part else 0 for part in match.groups())
    return hours * 3600 + minutes * 60 + seconds

#endregion === Durations ===

#region === Sequence patterns ===

@dataclass(frozen=True)
class Token:
    kind: str
    value: object = None


@dataclass
class PhaseNode:
    seconds: int
    label: str
    duration: str


@dataclass
class GroupNode:
    items: list
    multiply: int = 1


@dataclass(frozen=True)
class SequenceSummary:
    total_seconds: int
    phase_count: int
    description: str


# Splits a pattern into tokens. Unknown characters are skipped.
def tokenize(pattern):
    tokens = []
    pos = 0
    length = len(pattern)
    while pos < length:
        char = pattern[pos]
        if char.isspace():
            pos += 1
        elif char == "(":
            tokens.append(Token(LPAREN))
            pos += 1
        elif char == ")":
            tokens.append(Token(RPAREN))
            pos += 1
        elif char == ",":
            tokens.append(Token(COMMA))
            pos += 1
        elif char in "\"'":
            end = pattern.find(char, pos + 1)
            if end == -1:
                end = length
            tokens.append(Token(LABEL, pattern[pos + 1:end]))
            pos = end + 1
        elif char in "xX" and tokens and tokens[-1].kind == RPAREN and _MULT_TOKEN_RE.match(pattern, pos):
            match = _MULT_TOKEN_RE.match(pattern, pos)
            tokens.append(Token(MULT, int(match.group(1))))
            pos = match.end()
        elif char.isdigit():
            match = _DURATION_TOKEN_RE.match(pattern, pos)
            word = _WORD_RE.match(pattern, pos)
            # "10min" or "3rd" are words, not a duration followed by junk
            if word.end() > match.end():
                tokens.append(Token(LABEL, word.group()))
                pos = word.end()
            else:
                tokens.append(Token(DURATION, match.group()))
                pos = match.end()
        else:
            word = _WORD_RE.match(pattern, pos)
            if word is None:
                pos += 1
                continue
            tokens.append(Token(LABEL, word.group()))
            pos = word.end()
    return tokens


# Recursive descent over the token list. Returns (items, next_position); a closing paren ends the current list.
def _parse_items(tokens, pos):
    items = []
    while pos < len(tokens):
        token = tokens[pos]
        if token.kind == DURATION:
            seconds = parse_duration(token.value)
            pos += 1
            label = DEFAULT_LABEL
            if pos < len(tokens) and tokens[pos].kind == LABEL:
                label = tokens[pos].value
                pos += 1
            if seconds > 0:
                items.append(PhaseNode(seconds, label, token.value))
            else:
                log.debug(f"Skipping zero-length phase '{token.value}'")
        elif token.kind == LPAREN:
            inner, pos = _parse_items(tokens, pos + 1)
            multiply = 1
            if pos < len(tokens) and tokens[pos].kind == MULT:
                multiply = max(1, tokens[pos].value)
                pos += 1
            items.append(GroupNode(inner, multiply))
        elif token.kind == RPAREN:
            return items, pos + 1
        else:
            # Stray commas, labels without a duration, multipliers without a group
            pos += 1
    return items, pos


def parse_tree(pattern):
    items, _ = _parse_items(tokenize(pattern), 0)
    return items


# Depth-first expansion of the nested items into the flat phase list. Every group gets a loop id from its position
# (1-based, dot-joined with its parent's id when nested).
def _expand(items, parent_loop_id=None, loop_iteration=None, loop_total=None):
    phases = []
    group_index = 0
    for item in items:
        if isinstance(item, PhaseNode):
            phases.append(Phase(
                seconds=item.seconds,
                label=item.label,
                duration=item.duration,
                loop_id=parent_loop_id,
                loop_iteration=loop_iteration,
                loop_total=loop_total,
            ))
            continue
        group_index += 1
        loop_id = f"{parent_loop_id}.{group_index}" if parent_loop_id else str(group_index)
        for iteration in range(1, item.multiply + 1):
            phases.extend(_expand(item.items, loop_id, iteration, item.multiply))
    return phases


# Resolves a preset name, then parses the pattern into its flat, ordered list of phases.
def parse_sequence(pattern, presets=None):
    if pattern is None:
        return []
    pattern = resolve_preset(pattern, presets)
    phases = _expand(parse_tree(pattern))
    log.debug(f"Parsed sequence '{pattern}' into {len(phases)} phases")
    return phases


def resolve_preset(pattern, presets=None):
    if presets and pattern in presets:
        return presets[pattern]
    return pattern


def summarize(phases):
    """Total time, phase count and a short description like ``4x work, 4x rest, break``.

    Repeated labels are counted in order of first appearance.
    """
    counts = {}
    for phase in phases:
        counts[phase.label] = counts.get(phase.label, 0) + 1
    description = ", ".join(f"{count}x {label}" if count > 1 else label for label, count in counts.items())
    return SequenceSummary(
        total_seconds=sum(phase.seconds for phase in phases),
        phase_count=len(phases),
        description=description,
    )


# One-line human summary, used when starting a sequence and by the presets listing.
def describe(phases):
    summary = summarize(phases)
    return f"{summary.description} ({summary.phase_count} phases, {format_duration(summary.total_seconds)} total)"

#endregion === Sequence patterns ===
