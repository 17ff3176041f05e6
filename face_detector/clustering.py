"""
Merging of overlapping cascade windows.

A cascade search fires many times around each real face, at nearby
positions and sizes. cluster_detections collapses those windows into one
Detection per face by intersection-over-union.
"""

from typing import List, Sequence

from face_detector.detection import Detection


def iou(a: Detection, b: Detection) -> float:
    """Intersection over union of two square detections."""
    r1, c1, s1 = float(a.row), float(a.col), float(a.scale)
    r2, c2, s2 = float(b.row), float(b.col), float(b.scale)

    over_row = max(0.0, min(r1 + s1 / 2, r2 + s2 / 2) - max(r1 - s1 / 2, r2 - s2 / 2))
    over_col = max(0.0, min(c1 + s1 / 2, c2 + s2 / 2) - max(c1 - s1 / 2, c2 - s2 / 2))

    inter = over_row * over_col
    union = s1 * s1 + s2 * s2 - inter
    if union <= 0:
        return 0.0
    return inter / union


def cluster_detections(
    detections: Sequence[Detection],
    iou_threshold: float,
) -> List[Detection]:
    """Merge detections whose overlap exceeds iou_threshold.

    Candidates are visited by score (descending, ties broken by position
    so the result only depends on the input set). Each unassigned
    candidate seeds a cluster that absorbs every later unassigned
    candidate overlapping it by more than the threshold. A cluster's
    row, column and scale are the integer means of its members; its
    score is their sum.

    Returns:
        One Detection per cluster, highest merged score first.
    """
    ordered = sorted(detections, key=lambda d: (-d.score, d.row, d.col, d.scale))
    assigned = [False] * len(ordered)
    clusters: List[Detection] = []

    for i, seed in enumerate(ordered):
        if assigned[i]:
            continue

        assigned[i] = True
        members = [seed]
        for j in range(i + 1, len(ordered)):
            if not assigned[j] and iou(seed, ordered[j]) > iou_threshold:
                assigned[j] = True
                members.append(ordered[j])

        n = len(members)
        clusters.append(Detection(
            row=sum(m.row for m in members) // n,
            col=sum(m.col for m in members) // n,
            scale=sum(m.scale for m in members) // n,
            score=float(sum(m.score for m in members)),
        ))

    clusters.sort(key=lambda d: (-d.score, d.row, d.col, d.scale))
    return clusters
