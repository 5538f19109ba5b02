"""Locate the block (label, screen, def, ...) enclosing a cursor position."""
from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

from .index import NavigationData


@dataclass(frozen=True)
class BlockRule:
    """Block-opening statements: one of *keywords*, a name, then *trailer*."""
    keywords: Tuple[str, ...]
    trailer: str = r'\s*(?:\(.*\):|:)'

    def match(self, line: str) -> Optional[str]:
        """Return the keyword if *line* opens one of these blocks."""
        keywords = "|".join(re.escape(k) for k in self.keywords)
        match = re.match(rf'\s*({keywords})\s+[A-Za-z0-9_]+{self.trailer}', line)
        return match.group(1) if match else None


BLOCK_RULES: Tuple[BlockRule, ...] = (
    BlockRule(("screen", "label", "transform")),
    BlockRule(("def", "class")),
    BlockRule(("style",)),
)


def get_current_context(lines: Sequence[str], position: Dict[str, Any],
                        rules: Sequence[BlockRule] = BLOCK_RULES) -> Optional[str]:
    """Return the keyword of the nearest block opened at or above the cursor.

    String literals are blanked before matching, so ``"label foo:"`` inside
    a say statement is ignored. Returns None when no line up to the top of
    the document opens a block.
    """
    if not lines:
        return None

    start = min(position.get("line", 0), len(lines) - 1)
    for number in range(start, -1, -1):
        line = NavigationData.filter_string_literals(lines[number])
        for rule in rules:
            keyword = rule.match(line)
            if keyword:
                return keyword
    return None
