from .tree import build_tree
from .state import FeedState
from .mutator import MutationHandle, OptimisticMutator

__all__ = ["build_tree", "FeedState", "MutationHandle", "OptimisticMutator"]
