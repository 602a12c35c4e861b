# -- Periodic Cell Grid for Neighbor Search -- #

'''
Uniform cell grid for O(N) neighbor search in a channel that is
periodic along x and bounded along y.

The domain is divided into cells of height h (the kernel support
radius) and width Lx / floor(Lx / h) >= h, so the period holds a
whole number of columns. A neighbor query only visits the 3x3 stencil of
cells around the query point: columns wrap modulo the grid width,
rows are clamped to the grid (no wraparound in y) and no cell is
visited twice.

The grid is built with a counting sort (stable sort by cell index,
per-cell counts via bincount, exclusive prefix sum for offsets), which
needs no atomic operations and produces the same layout on every
run. The classic head / next linked-list view is derived from the
sorted order so single-point insertion and list walks remain
available alongside the vectorized pair query.

All displacements are periodic in x:

    dx -= Lx * round(dx / Lx)

References:
-----------
Ihmsen et al. (2011) -- Parallel Neighbor-Search for SPH
Green (2010) -- Particle Simulation using CUDA
'''

from __future__ import annotations

import math
from typing import Callable

import numpy as np

# Smallest accepted cell size [m]
MIN_CELL_SIZE: float = 1e-6

# Keeps clamped y strictly inside the last row [m]
Y_CLAMP_MARGIN: float = 1e-5


######################################################################
# -- Periodic Displacement -- #
######################################################################

def periodicDelta(a: np.ndarray, b: np.ndarray, Lx: float) -> np.ndarray:
    '''
    Shortest displacement a - b on a domain periodic in x.

    Parameters:
    -----------
    a : np.ndarray
        Positions, shape (N, 2) or (2,)
    b : np.ndarray
        Positions, shape (N, 2) or (2,)
    Lx : float
        Period along x [m]

    Returns:
    --------
    np.ndarray : Displacements with |dx| <= Lx / 2
    '''
    d = np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)
    d[..., 0] -= Lx * np.round(d[..., 0] / Lx)
    return d


def wrapX(x: np.ndarray, Lx: float) -> np.ndarray:
    '''Wrap x coordinates into [0, Lx).'''
    wrapped = x - np.floor(x / Lx) * Lx
    # floor() round-off can land exactly on Lx
    return np.where(wrapped >= Lx, wrapped - Lx, wrapped)


def periodicColumnCount(Lx: float, cellSize: float) -> int:
    '''
    Number of whole columns of width >= cellSize that tile the period.

    floor(Lx / cellSize), at least 1. A tiny tolerance keeps exact
    multiples from losing a column to round-off.
    '''
    return max(1, int(math.floor(Lx / max(cellSize, MIN_CELL_SIZE) + 1e-9)))


######################################################################
# -- Periodic Cell Grid -- #
######################################################################

class PeriodicCellGrid:
    '''
    Cell-linked grid over [xMin, xMin + Lx) x [yMin, yMin + Ly].

    Parameters:
    -----------
    domainMin : np.ndarray
        Lower corner of the domain [m], shape (2,)
    domainSize : np.ndarray
        Domain extent (Lx, Ly) [m], shape (2,)
    cellSize : float
        Cell edge length [m], normally the smoothing length h
    '''

    def __init__(
        self,
        domainMin: np.ndarray,
        domainSize: np.ndarray,
        cellSize: float,
    ) -> None:
        self._domainMin = np.asarray(domainMin, dtype=np.float64).copy()
        self._Lx = float(domainSize[0])
        self._Ly = float(domainSize[1])
        self._cellSize = max(float(cellSize), MIN_CELL_SIZE)

        # Whole columns only: every column is at least one cell size wide so
        # the 3-column stencil also covers pairs across the x seam
        self._gridSizeX = periodicColumnCount(self._Lx, self._cellSize)
        self._cellWidthX = self._Lx / self._gridSizeX
        self._gridSizeY = max(1, int(math.ceil(self._Ly / self._cellSize)))

        self._head = np.full(self.gridCount, -1, dtype=np.int64)
        self._next = np.full(0, -1, dtype=np.int64)
        self._positions = np.zeros((0, 2))

        # Counting-sort layout (valid after build())
        self._sortedIndices = np.zeros(0, dtype=np.int64)
        self._cellStart = np.zeros(self.gridCount, dtype=np.int64)
        self._cellCount = np.zeros(self.gridCount, dtype=np.int64)
        self._sorted = False

    ######################################################################
    # -- Properties -- #
    ######################################################################

    @property
    def gridSizeX(self) -> int:
        '''Number of cell columns (periodic direction).'''
        return self._gridSizeX

    @property
    def gridSizeY(self) -> int:
        '''Number of cell rows.'''
        return self._gridSizeY

    @property
    def gridCount(self) -> int:
        '''Total number of cells.'''
        return self._gridSizeX * self._gridSizeY

    @property
    def cellSize(self) -> float:
        '''Cell edge length [m].'''
        return self._cellSize

    @property
    def cellWidthX(self) -> float:
        '''Column width along the periodic axis (>= cellSize when Lx >= cellSize) [m].'''
        return self._cellWidthX

    @property
    def Lx(self) -> float:
        '''Period along x [m].'''
        return self._Lx

    @property
    def head(self) -> np.ndarray:
        '''Per-cell head index of the linked list (-1 = empty).'''
        return self._head

    @property
    def next(self) -> np.ndarray:
        '''Per-point index of the next point in the same cell (-1 = end).'''
        return self._next

    @property
    def nPoints(self) -> int:
        '''Number of points the grid was built for.'''
        return len(self._positions)

    ######################################################################
    # -- Cell Coordinates -- #
    ######################################################################

    def cellCoords(self, points: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        '''
        Integer cell coordinates, x wrapped and y clamped.

        Parameters:
        -----------
        points : np.ndarray
            World positions, shape (N, 2)

        Returns:
        --------
        tuple[np.ndarray, np.ndarray] : (cx, cy), each shape (N,)
        '''
        points = np.atleast_2d(points)
        rx = wrapX(points[:, 0] - self._domainMin[0], self._Lx)
        ry = np.clip(points[:, 1] - self._domainMin[1], 0.0, max(self._Ly - Y_CLAMP_MARGIN, 0.0))

        cx = np.clip(np.floor(rx / self._cellWidthX).astype(np.int64), 0, self._gridSizeX - 1)
        cy = np.clip(np.floor(ry / self._cellSize).astype(np.int64), 0, self._gridSizeY - 1)
        return cx, cy

    def cellIndex(self, points: np.ndarray) -> np.ndarray:
        '''Flat cell index cy * gridSizeX + cx, shape (N,).'''
        cx, cy = self.cellCoords(points)
        return cy * self._gridSizeX + cx

    def stencilOffsets(self) -> list[int]:
        '''
        Distinct x offsets of the 3x3 stencil.

        Grids narrower than three columns would otherwise visit the
        same wrapped column twice.
        '''
        if self._gridSizeX >= 3:
            return [-1, 0, 1]
        return list(range(self._gridSizeX))

    ######################################################################
    # -- Linked-List Interface -- #
    ######################################################################

    def clear(self, nPoints: int = 0) -> None:
        '''
        Reset every cell head to empty.

        Parameters:
        -----------
        nPoints : int
            Capacity of the per-point next array
        '''
        self._head.fill(-1)
        self._next = np.full(nPoints, -1, dtype=np.int64)
        self._positions = np.zeros((nPoints, 2))
        self._sorted = False

    def insert(self, point: np.ndarray, index: int) -> None:
        '''
        Prepend a point to the linked list of its cell.

        Parameters:
        -----------
        point : np.ndarray
            World position, shape (2,)
        index : int
            Point identity (must be < capacity given to clear())
        '''
        cell = int(self.cellIndex(np.asarray(point).reshape(1, 2))[0])
        self._positions[index] = point
        self._next[index] = self._head[cell]
        self._head[cell] = index
        self._sorted = False

    def build(self, points: np.ndarray) -> None:
        '''
        Rebuild the grid for a whole point set.

        Counting sort: stable argsort by cell, bincount for per-cell
        counts, exclusive cumulative sum for cell start offsets. The
        head / next lists are then read off the sorted order.

        Parameters:
        -----------
        points : np.ndarray
            World positions, shape (N, 2)
        '''
        points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        nPoints = len(points)
        self._positions = points.copy()

        cells = self.cellIndex(points) if nPoints else np.zeros(0, dtype=np.int64)
        order = np.argsort(cells, kind='stable')
        counts = np.bincount(cells, minlength=self.gridCount)
        starts = np.zeros(self.gridCount, dtype=np.int64)
        np.cumsum(counts[:-1], out=starts[1:])

        self._sortedIndices = order.astype(np.int64)
        self._cellCount = counts.astype(np.int64)
        self._cellStart = starts

        # Linked-list view: each point links to its successor in the sorted run
        self._head.fill(-1)
        self._next = np.full(nPoints, -1, dtype=np.int64)
        occupied = counts > 0
        self._head[occupied] = order[starts[occupied]]
        if nPoints > 1:
            sortedCells = cells[order]
            sameCell = sortedCells[:-1] == sortedCells[1:]
            self._next[order[:-1][sameCell]] = order[1:][sameCell]

        self._sorted = True

    def forEachNeighbor(self, point: np.ndarray, radius: float,
                        visit: Callable[[int], None]) -> None:
        '''
        Call visit(index) for every stored point within radius of point.

        Walks the 3x3 stencil of point's cell and keeps candidates whose
        periodic squared distance is below radius^2. The stencil only
        covers the full disc when radius <= cellSize.

        Parameters:
        -----------
        point : np.ndarray
            World query position, shape (2,)
        radius : float
            Search radius [m], at most cellSize
        visit : Callable[[int], None]
            Callback receiving neighbor point indices
        '''
        if radius > self._cellSize:
            raise ValueError(
                f'radius {radius} exceeds cell size {self._cellSize}; '
                f'the 3x3 stencil would miss neighbors'
            )

        point = np.asarray(point, dtype=np.float64)
        radiusSq = radius * radius
        cx, cy = self.cellCoords(point.reshape(1, 2))
        cx = int(cx[0])
        cy = int(cy[0])

        for oy in (-1, 0, 1):
            ny = cy + oy
            if ny < 0 or ny >= self._gridSizeY:
                continue
            for ox in self.stencilOffsets():
                nx = (cx + ox) % self._gridSizeX
                j = int(self._head[ny * self._gridSizeX + nx])
                while j != -1:
                    d = periodicDelta(point, self._positions[j], self._Lx)
                    if d @ d < radiusSq:
                        visit(j)
                    j = int(self._next[j])

    ######################################################################
    # -- Vectorized Pair Query -- #
    ######################################################################

    def queryPairs(
        self,
        queryPoints: np.ndarray,
        radius: float,
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        '''
        All (query, point) pairs closer than radius.

        For every query point the stencil cells are expanded into
        candidate ranges of the sorted index array, then filtered by
        the periodic squared distance. A query point that is also an
        indexed point pairs with itself (distance 0).

        Parameters:
        -----------
        queryPoints : np.ndarray
            World positions, shape (Q, 2)
        radius : float
            Search radius [m], at most the cell size

        Returns:
        --------
        tuple : (queryIdx, pointIdx, dr, dist)
            queryIdx, pointIdx: shape (P,) int arrays
            dr: query - point displacement (periodic x), shape (P, 2)
            dist: |dr|, shape (P,)
        '''
        if not self._sorted:
            self.build(self._positions)

        queryPoints = np.asarray(queryPoints, dtype=np.float64).reshape(-1, 2)
        nQuery = len(queryPoints)
        if nQuery == 0 or self.nPoints == 0:
            return _emptyPairs()

        cx, cy = self.cellCoords(queryPoints)
        queryIds = np.arange(nQuery, dtype=np.int64)

        qChunks: list[np.ndarray] = []
        jChunks: list[np.ndarray] = []

        for oy in (-1, 0, 1):
            ny = cy + oy
            validRow = (ny >= 0) & (ny < self._gridSizeY)
            for ox in self.stencilOffsets():
                nx = np.mod(cx + ox, self._gridSizeX)
                cells = ny * self._gridSizeX + nx

                counts = np.where(validRow, self._cellCount[np.where(validRow, cells, 0)], 0)
                total = int(counts.sum())
                if total == 0:
                    continue

                starts = self._cellStart[np.where(validRow, cells, 0)]

                # Expand [start, start + count) ranges without a Python loop
                qIdx = np.repeat(queryIds, counts)
                runStart = np.repeat(np.cumsum(counts) - counts, counts)
                offsetInRun = np.arange(total, dtype=np.int64) - runStart
                slot = np.repeat(starts, counts) + offsetInRun

                qChunks.append(qIdx)
                jChunks.append(self._sortedIndices[slot])

        if not qChunks:
            return _emptyPairs()

        qAll = np.concatenate(qChunks)
        jAll = np.concatenate(jChunks)

        dr = periodicDelta(queryPoints[qAll], self._positions[jAll], self._Lx)
        distSq = np.einsum('ij,ij->i', dr, dr)
        within = distSq < radius * radius

        qAll = qAll[within]
        jAll = jAll[within]
        dr = dr[within]
        dist = np.sqrt(distSq[within])

        return (qAll, jAll, dr, dist)


def _emptyPairs() -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    '''Empty result of queryPairs().'''
    return (
        np.zeros(0, dtype=np.int64),
        np.zeros(0, dtype=np.int64),
        np.zeros((0, 2)),
        np.zeros(0),
    )
