"""
Requester display names with same-name disambiguation.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from ..catalog.models import Requester

UNKNOWN_REQUESTER = "未知用户"


class RequesterNameResolver:
    """Resolve a requester's display name against every known user.

    A name shared by several users gets the requester's grade appended; when
    users sharing the name also share that grade, the class is appended too.
    Users without a grade keep the plain name.
    """

    def __init__(self, requesters: Iterable[Requester]):
        self._by_name: Dict[str, List[Requester]] = defaultdict(list)
        for requester in requesters:
            if requester.name:
                self._by_name[requester.name].append(requester)

    def display_name(self, requester: Optional[Requester]) -> str:
        name = requester.name if requester and requester.name else UNKNOWN_REQUESTER

        same_name = self._by_name.get(name, [])
        if len(same_name) <= 1 or requester is None or not requester.grade:
            return name

        same_grade = [u for u in same_name if u.grade == requester.grade]
        if len(same_grade) > 1 and requester.class_name:
            return f"{name}（{requester.grade} {requester.class_name}）"
        return f"{name}（{requester.grade}）"
