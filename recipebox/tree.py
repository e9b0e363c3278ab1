"""Build the nested tag forest from flat parent-pointer rows."""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

from .models import Tag, TagNode


def _tag_sort_key(tag: Tag) -> Tuple[str, int]:
    return (tag.name, tag.id)


def _to_node(tag: Tag) -> TagNode:
    return TagNode(
        id=tag.id,
        name=tag.name,
        parent_tag_id=tag.parent_tag_id,
        created_at=tag.created_at,
    )


def build_tag_tree(tags: Iterable[Tag]) -> List[TagNode]:
    """Return the root tags with their children nested and sorted by name.

    Only roots are expanded, and the walk only ever follows parent -> child
    edges. A tag whose parent id does not exist, or that sits on a parent
    cycle, is never reached and is left out of the forest. The walk uses an
    explicit stack, so arbitrarily deep chains are fine.
    """

    children_by_parent: Dict[Optional[int], List[Tag]] = {}
    for tag in tags:
        children_by_parent.setdefault(tag.parent_tag_id, []).append(tag)

    roots = [_to_node(tag) for tag in sorted(children_by_parent.get(None, []), key=_tag_sort_key)]
    seen: Set[int] = {node.id for node in roots}
    stack = list(roots)
    while stack:
        node = stack.pop()
        for tag in sorted(children_by_parent.get(node.id, []), key=_tag_sort_key):
            if tag.id in seen:
                continue
            seen.add(tag.id)
            child = _to_node(tag)
            node.children.append(child)
            stack.append(child)
    return roots


def flatten_tag_tree(forest: Sequence[TagNode]) -> Iterator[Tuple[int, Optional[int]]]:
    """Yield ``(id, parent_tag_id)`` pairs depth-first."""

    stack = list(reversed(forest))
    while stack:
        node = stack.pop()
        yield node.id, node.parent_tag_id
        stack.extend(reversed(node.children))
