from __future__ import annotations

from collections import deque


class DependencyGraph:
    """Directed edges ``source -> derived`` between resource paths.

    The graph is kept acyclic: an edge that would close a cycle is refused.
    """

    def __init__(self) -> None:
        self._edges: dict[str, list[str]] = {}

    def __len__(self) -> int:
        return sum(len(dsts) for dsts in self._edges.values())

    def add_edge(self, src: str, dst: str) -> bool:
        """Add ``src -> dst``. Returns False, leaving the graph unchanged, on a cycle."""
        if self.edge_exists(src, dst):
            return True
        if src == dst or self.path_exists(dst, src):
            return False
        self._edges.setdefault(src, []).append(dst)
        return True

    def edge_exists(self, src: str, dst: str) -> bool:
        return dst in self._edges.get(src, ())

    def remove_edge(self, src: str, dst: str) -> None:
        dsts = self._edges.get(src)
        if dsts and dst in dsts:
            dsts.remove(dst)
            if not dsts:
                del self._edges[src]

    def remove_edges_from(self, src: str) -> list[str]:
        return self._edges.pop(src, [])

    def remove_edges_to(self, dst: str) -> None:
        for src in list(self._edges):
            self.remove_edge(src, dst)

    def remove_node(self, path: str) -> None:
        self.remove_edges_from(path)
        self.remove_edges_to(path)

    def dependents(self, src: str) -> list[str]:
        return list(self._edges.get(src, ()))

    def sources_of(self, dst: str) -> list[str]:
        return [src for src, dsts in self._edges.items() if dst in dsts]

    def path_exists(self, src: str, dst: str) -> bool:
        if src == dst:
            return True
        visited = {src}
        queue = deque([src])
        while queue:
            node = queue.popleft()
            for nxt in self._edges.get(node, ()):
                if nxt == dst:
                    return True
                if nxt not in visited:
                    visited.add(nxt)
                    queue.append(nxt)
        return False
