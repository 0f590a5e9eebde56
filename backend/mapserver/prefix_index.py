from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from .map_errors import StructureFrozenError


@dataclass
class TrieNode:
    char: str = ""
    children: dict[str, TrieNode] = field(default_factory=dict)
    # A name may end here and still continue in children ("Bear" and "Bear Creek").
    terminal: bool = False


class PrefixIndex:
    """Character trie over place names, queried by prefix.

    Built once, then frozen; lookups never mutate it.
    """

    def __init__(self, names: Iterable[str] = ()) -> None:
        self._root = TrieNode()
        self._size = 0
        self._frozen = False
        for name in names:
            self.insert(name)

    def insert(self, name: str) -> None:
        if self._frozen:
            raise StructureFrozenError("prefix index is frozen")
        node = self._root
        for ch in name:
            child = node.children.get(ch)
            if child is None:
                child = TrieNode(char=ch)
                node.children[ch] = child
            node = child
        if not node.terminal:
            node.terminal = True
            self._size += 1

    def freeze(self) -> PrefixIndex:
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return self._size

    def _find(self, prefix: str) -> TrieNode | None:
        node = self._root
        for ch in prefix:
            node = node.children.get(ch)
            if node is None:
                return None
        return node

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        node = self._find(name)
        return node is not None and node.terminal

    def keys_with_prefix(self, prefix: str) -> list[str]:
        """All inserted names starting with ``prefix``, in lexicographic order."""
        start = self._find(prefix)
        if start is None:
            return []
        matches: list[str] = []
        # Iterative pre-order walk; children pushed in reverse so the smallest pops first.
        stack: list[tuple[TrieNode, str]] = [(start, prefix)]
        while stack:
            node, text = stack.pop()
            if node.terminal:
                matches.append(text)
            for ch in sorted(node.children, reverse=True):
                stack.append((node.children[ch], text + ch))
        return matches
