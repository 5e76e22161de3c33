"""Book structure: own-format detection and canonical nested ordering"""

from typing import Iterable, Sequence

from wxrbook.core.models import (
    BACK_MATTER, CHAPTER, FRONT_MATTER, METADATA, PART, STRUCTURAL_TYPES,
    ParsedDocument, ParsedPost,
)


def is_own_format(doc: ParsedDocument) -> bool:
    """True when at least two distinct book-structural post types occur.

    A single structural type is not enough evidence that the export came
    from a book; ordinary blog exports are imported in file order.
    """
    seen: set[str] = set()
    for post in doc.posts:
        if post.type in STRUCTURAL_TYPES:
            seen.add(post.type)
            if len(seen) >= 2:
                return True
    return False


def nested_sort(posts: Sequence[ParsedPost], custom_types: Iterable[str] = ()) -> list[ParsedPost]:
    """Reorder posts into book order.

    metadata (first one only), front matter, each part followed by its
    chapters, back matter, then any configured custom types. Ties keep their
    relative input order; posts of any other type, and chapters whose parent
    is not a part in the list, are left out.
    """
    by_order = sorted(posts, key=lambda p: p.order)
    of_type = lambda t: [p for p in by_order if p.type == t]

    result: list[ParsedPost] = []
    result.extend(of_type(METADATA)[:1])
    result.extend(of_type(FRONT_MATTER))

    chapters = of_type(CHAPTER)
    for part in of_type(PART):
        result.append(part)
        result.extend(c for c in chapters if c.parent_id == part.id)

    result.extend(of_type(BACK_MATTER))

    extra = [t for t in dict.fromkeys(custom_types) if t not in STRUCTURAL_TYPES]
    result.extend(p for p in by_order if p.type in extra)
    return result
