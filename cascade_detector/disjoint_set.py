# cascade_detector/disjoint_set.py


class DisjointSet:
    """
    Union-find over the integers 0..length-1 with path compression.

    Each element starts in its own set. Sets are only merged by union() and
    only queried by find().
    """

    def __init__(self, length):
        if length is None or length < 0:
            raise ValueError("DisjointSet length must be a non-negative integer")
        self.length = length
        self.parent = list(range(length))

    def __len__(self):
        return self.length

    def find(self, i):
        """Representative of the set containing i"""
        root = i
        while self.parent[root] != root:
            root = self.parent[root]

        # Point every visited element straight at the root
        while self.parent[i] != root:
            self.parent[i], i = root, self.parent[i]

        return root

    def union(self, i, j):
        """Merge the sets containing i and j"""
        i_root = self.find(i)
        j_root = self.find(j)
        self.parent[i_root] = j_root
