# wandr_sdk/feed/tree.py
from typing import Dict, List, Optional, Sequence

from wandr_sdk.schemas.comment import CommentNode, CommentRecord


def _resolve_root(comment_id: str, parent_of: Dict[str, Optional[str]]) -> Optional[str]:
    """
    ID корня, под которым отображается комментарий, или None, если он сам корень.
    Корень - комментарий без родителя, с родителем вне набора, либо участник цикла.
    """
    chain = [comment_id]
    parent = parent_of.get(comment_id)
    while parent is not None and parent in parent_of:
        if parent in chain:
            return None if parent == comment_id else parent
        chain.append(parent)
        parent = parent_of[parent]
    return None if chain[-1] == comment_id else chain[-1]


def build_tree(flat_comments: Sequence[CommentRecord]) -> List[CommentNode]:
    """
    Строит двухуровневое дерево комментариев из плоского списка.

    Корни и ответы внутри каждого корня идут в порядке входного списка.
    Ответы на ответы поднимаются под исходный корень. Входной список не
    изменяется, каждый комментарий попадает в результат ровно один раз.
    """
    parent_of: Dict[str, Optional[str]] = {}
    for comment in flat_comments:
        # При повторяющихся id учитывается первое вхождение
        parent_of.setdefault(comment.id, comment.parent_id)

    nodes = [CommentNode(comment=comment) for comment in flat_comments]
    roots: List[CommentNode] = []
    root_by_id: Dict[str, CommentNode] = {}
    pending: List[tuple] = []

    for node in nodes:
        root_id = _resolve_root(node.id, parent_of)
        if root_id is None:
            roots.append(node)
            root_by_id.setdefault(node.id, node)
        else:
            pending.append((root_id, node))

    for root_id, node in pending:
        root_by_id[root_id].replies.append(node)
    return roots
