"""Resolution of observed structure names to canonical structure keys."""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Sequence, Tuple


class StructureAliasResolver:
    """Map free-form structure names onto canonical identifiers.

    Matching runs exact, then case-insensitive exact against the display
    aliases, then substring containment against the keyword list. Keywords are
    tried in declaration order and the first one contained in the name wins,
    so ``"cortical"`` listed before ``"gray"`` decides ties for names that
    contain both.
    """

    def __init__(
        self,
        display_aliases: Mapping[str, str],
        keywords: Sequence[Tuple[str, str]],
        display_names: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._display_aliases: Dict[str, str] = dict(display_aliases)
        self._folded_aliases: Dict[str, str] = {}
        for alias, canonical in self._display_aliases.items():
            self._folded_aliases.setdefault(alias.lower(), canonical)
        self._keywords: List[Tuple[str, str]] = [
            (keyword.lower(), canonical) for keyword, canonical in keywords
        ]
        self._display_names: Dict[str, str] = dict(display_names or {})
        self._canonicals = frozenset(
            list(self._display_aliases.values()) + [canonical for _, canonical in self._keywords]
        )

    @property
    def keywords(self) -> Tuple[str, ...]:
        return tuple(keyword for keyword, _ in self._keywords)

    @property
    def canonical_structures(self) -> frozenset[str]:
        return self._canonicals

    def resolve(self, raw_name: str) -> Optional[str]:
        """Return the canonical structure for ``raw_name`` or ``None``."""

        if not raw_name:
            return None
        name = raw_name.strip()

        if name in self._display_aliases:
            return self._display_aliases[name]

        folded = name.lower()
        if folded in self._folded_aliases:
            return self._folded_aliases[folded]

        for keyword, canonical in self._keywords:
            if keyword in folded:
                return canonical
        return None

    def find_keyword(self, text: str) -> Optional[str]:
        """Return the first configured keyword occurring in ``text``."""

        folded = text.lower()
        for keyword, _ in self._keywords:
            if keyword in folded:
                return keyword
        return None

    def display_name(self, canonical: str) -> str:
        return self._display_names.get(canonical, canonical)
