"""Find references to other users, and hashtags, in post text.

Everything here is pure: no store access, no logging, no exceptions. Anything that is not a
non-empty string simply contains no mentions.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable

HANDLE_PATTERN = re.compile(r'@([A-Za-z0-9_]+)')
HASHTAG_PATTERN = re.compile(r'#[^\s#]+')

DEFAULT_ALIAS_NAMES = ('山田', '矢間田', 'ヤマダ', 'やまだ')
DEFAULT_HONORIFICS = ('さん',)


@dataclass(frozen=True)
class Mention:
    referenced_id: str
    offset: int


@dataclass(frozen=True)
class MentionAliases:
    """Names the handle grammar cannot express, recognised as ``@name`` or ``name`` + honorific"""
    names: tuple[str, ...] = DEFAULT_ALIAS_NAMES
    honorifics: tuple[str, ...] = field(default=DEFAULT_HONORIFICS)

    @classmethod
    def from_config(cls, config) -> 'MentionAliases':
        return cls(names=tuple(n for n in config['MENTION_ALIASES'] if n),
                   honorifics=tuple(h for h in config['MENTION_HONORIFICS'] if h))

    @classmethod
    def coerce(cls, aliases) -> 'MentionAliases':
        if aliases is None:
            return DEFAULT_ALIASES
        if isinstance(aliases, MentionAliases):
            return aliases
        return cls(names=tuple(aliases))

    def first_offset(self, text: str, name: str) -> int | None:
        """Smallest position at which ``name`` is referenced, by either form"""
        candidates = []
        at_form = text.find('@' + name)
        if at_form != -1:
            candidates.append(at_form)
        for honorific in self.honorifics:
            suffixed = text.find(name + honorific)
            if suffixed != -1:
                candidates.append(suffixed)
        return min(candidates) if candidates else None


DEFAULT_ALIASES = MentionAliases()


def extract(text, aliases: MentionAliases | Iterable[str] | None = None) -> tuple[Mention, ...]:
    """Referenced identifiers in ``text``, one Mention each, in first-seen order.

    Handles (``@`` + ASCII word characters) are scanned first, then the alias names. When an
    identifier turns up more than once only its first occurrence counts.
    """
    if not isinstance(text, str) or not text:
        return ()
    aliases = MentionAliases.coerce(aliases)

    found: dict[str, Mention] = {}
    for match in HANDLE_PATTERN.finditer(text):
        handle = match.group(1)
        if handle not in found:
            found[handle] = Mention(referenced_id=handle, offset=match.start())

    for name in aliases.names:
        if name in found:
            continue
        offset = aliases.first_offset(text, name)
        if offset is not None:
            found[name] = Mention(referenced_id=name, offset=offset)

    return tuple(found.values())


def referenced_ids(text, aliases=None) -> list[str]:
    return [mention.referenced_id for mention in extract(text, aliases)]


def normalize_hashtag(tag: str) -> str:
    tag = tag.strip()
    if not tag.startswith('#'):
        tag = '#' + tag
    return tag.casefold()


def extract_hashtags(text) -> tuple[str, ...]:
    """``#tag`` tokens, case folded and deduplicated, in first-seen order"""
    if not isinstance(text, str) or not text:
        return ()
    tags = []
    for match in HASHTAG_PATTERN.finditer(text):
        tag = match.group(0).casefold()
        if tag not in tags:
            tags.append(tag)
    return tuple(tags)
