"""
roadmap/connectivity.py - 连通分量索引

roadmap 顶点 ID 是 arena 下标（0..n-1 连续、只追加），连通索引因此直接
用数组存储：parent[v] 为父顶点，size[r] 为以 r 为根的分量大小。

roadmap 每加入一条边就合并一次。边从不删除，合并是单调的：
same(u, v) 一旦为 True，在下一次 clear() 之前始终为 True。
"""

from typing import Dict, List, Set


class UnionFind:
    """roadmap 顶点的连通分量索引（按大小合并 + 路径减半）

    Example:
        >>> uf = UnionFind(3)
        >>> uf.union(0, 2)
        True
        >>> uf.same(0, 2), uf.n_components()
        (True, 2)
    """

    __slots__ = ("_parent", "_size", "_n_components")

    def __init__(self, n_vertices: int = 0):
        self._parent: List[int] = list(range(n_vertices))
        self._size: List[int] = [1] * n_vertices
        self._n_components = n_vertices

    def __len__(self) -> int:
        return len(self._parent)

    def __contains__(self, vertex) -> bool:
        return isinstance(vertex, int) and 0 <= vertex < len(self._parent)

    def add(self) -> int:
        """追加一个孤立顶点，返回其 ID（与 roadmap arena 下标一致）"""
        vid = len(self._parent)
        self._parent.append(vid)
        self._size.append(1)
        self._n_components += 1
        return vid

    def find(self, v: int) -> int:
        parent = self._parent
        while parent[v] != v:
            parent[v] = parent[parent[v]]
            v = parent[v]
        return v

    def union(self, u: int, v: int) -> bool:
        """合并 u, v 所在分量

        Returns:
            True = 两个分量被合并，False = 原本已连通
        """
        ru, rv = self.find(u), self.find(v)
        if ru == rv:
            return False
        if self._size[ru] < self._size[rv]:
            ru, rv = rv, ru
        self._parent[rv] = ru
        self._size[ru] += self._size[rv]
        self._n_components -= 1
        return True

    def same(self, u: int, v: int) -> bool:
        """u, v 是否在同一连通分量（单调：只会由 False 变为 True）"""
        return self.find(u) == self.find(v)

    def component_size(self, v: int) -> int:
        return self._size[self.find(v)]

    def components(self) -> List[Set[int]]:
        """全部连通分量，按大小降序"""
        groups: Dict[int, Set[int]] = {}
        for v in range(len(self._parent)):
            groups.setdefault(self.find(v), set()).add(v)
        return sorted(groups.values(), key=len, reverse=True)

    def n_components(self) -> int:
        return self._n_components

    def clear(self) -> None:
        self._parent.clear()
        self._size.clear()
        self._n_components = 0
