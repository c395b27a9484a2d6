"""
Deterministic Lloyd's k-means over planar coordinates.

Seeding: the distinct points are sorted lexicographically and K seeds are
taken at evenly spaced positions of that ordering. Ties between equidistant
centroids go to the lowest centroid index. Clusters never end up empty.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from ..errors import DegenerateClusteringError

DEFAULT_MAX_ITERATIONS = 100


@dataclass
class KMeansResult:
    """Outcome of a clustering run."""

    centroids: NDArray[np.float64]  # (k, 2)
    labels: NDArray[np.int64]  # (n,)
    iterations: int
    converged: bool

    @property
    def k(self) -> int:
        return len(self.centroids)


def distinct_points(points: NDArray[np.float64]) -> NDArray[np.float64]:
    """Unique rows in lexicographic order."""
    if len(points) == 0:
        return points.reshape(0, 2)
    return np.unique(points, axis=0)


def seed_centroids(points: NDArray[np.float64], k: int) -> NDArray[np.float64]:
    """Pick k distinct seeds at evenly spaced positions of the sorted points."""
    unique = distinct_points(points)
    if len(unique) < k:
        raise DegenerateClusteringError(k, len(unique))
    if k == 1:
        return unique[[0]].copy()
    positions = np.round(np.linspace(0, len(unique) - 1, k)).astype(int)
    return unique[positions].copy()


def assign_points(
    points: NDArray[np.float64],
    centroids: NDArray[np.float64],
) -> NDArray[np.int64]:
    """Index of the nearest centroid for each point (lowest index on ties)."""
    diff = points[:, None, :] - centroids[None, :, :]
    sq_dist = np.einsum("ijk,ijk->ij", diff, diff)
    return np.argmin(sq_dist, axis=1)


def _fill_empty_clusters(
    points: NDArray[np.float64],
    centroids: NDArray[np.float64],
    labels: NDArray[np.int64],
) -> NDArray[np.int64]:
    """Move the farthest point of a multi-member cluster into each empty one."""
    k = len(centroids)
    labels = labels.copy()

    for j in range(k):
        counts = np.bincount(labels, minlength=k)
        if counts[j] > 0:
            continue
        donors = counts[labels] > 1
        sq_dist = np.sum((points - centroids[labels]) ** 2, axis=1)
        sq_dist[~donors] = -1.0
        victim = int(np.argmax(sq_dist))
        labels[victim] = j
        centroids[j] = points[victim]

    return labels


def lloyd_kmeans(
    points: NDArray[np.float64],
    k: int,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> KMeansResult:
    """
    Cluster `points` into exactly `k` non-empty clusters.

    Iterates assignment and mean update until the labels stop changing or
    `max_iterations` is reached.

    Args:
        points: Array of shape (n, 2)
        k: Number of clusters (>= 1)
        max_iterations: Iteration cap

    Returns:
        KMeansResult with centroids and per-point labels

    Raises:
        DegenerateClusteringError: if fewer than k distinct points exist
    """
    if k < 1:
        raise ValueError(f"k must be at least 1, got {k}")

    points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    centroids = seed_centroids(points, k)

    labels = _fill_empty_clusters(points, centroids, assign_points(points, centroids))
    converged = False
    iterations = 0

    while iterations < max_iterations:
        iterations += 1
        for j in range(k):
            centroids[j] = points[labels == j].mean(axis=0)

        new_labels = assign_points(points, centroids)
        new_labels = _fill_empty_clusters(points, centroids, new_labels)

        if np.array_equal(new_labels, labels):
            converged = True
            break
        labels = new_labels

    for j in range(k):
        centroids[j] = points[labels == j].mean(axis=0)

    return KMeansResult(
        centroids=centroids,
        labels=labels,
        iterations=iterations,
        converged=converged,
    )
