from ._euclidean_distance import (
    EuclideanDistanceParameters,
    check_agreement,
    coarser_element_kind,
    euclidean_distance,
)

__all__ = [
    EuclideanDistanceParameters.__name__,
    check_agreement.__name__,
    coarser_element_kind.__name__,
    euclidean_distance.__name__,
]
