"""Interfaces of the external systems the lifecycle core consumes.

Group membership (authorization) and the question catalog are owned by other
services; the core only needs these narrow synchronous lookups.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol, Set, Tuple


@dataclass(frozen=True)
class GroupQuestion:
    """A question bound to a group's questionnaire."""

    question_id: int
    group_question_id: int
    input_type: str
    is_required: bool = True
    order_number: int = 0


class GroupMembership(Protocol):
    def is_user_assigned_to_group(self, user_id: int, group_id: int) -> bool:
        ...


class QuestionCatalog(Protocol):
    def group_questions(self, group_id: int) -> List[GroupQuestion]:
        """Questions of a group in questionnaire order."""
        ...

    def get_group_question(self, group_id: int, question_id: int) -> Optional[GroupQuestion]:
        ...

    def question_input_type(self, question_id: int) -> Optional[str]:
        ...


class InMemoryGroupMembership:
    """Membership lookup backed by a set of (user_id, group_id) pairs."""

    def __init__(self, assignments: Iterable[Tuple[int, int]] = ()):
        self._assignments: Set[Tuple[int, int]] = set(assignments)

    def assign(self, user_id: int, group_id: int) -> None:
        self._assignments.add((user_id, group_id))

    def is_user_assigned_to_group(self, user_id: int, group_id: int) -> bool:
        return (user_id, group_id) in self._assignments


class InMemoryQuestionCatalog:
    """Question catalog backed by a mapping of group id to its questions."""

    def __init__(self, groups: Optional[Dict[int, Iterable[GroupQuestion]]] = None):
        self._groups: Dict[int, List[GroupQuestion]] = {}
        for group_id, questions in (groups or {}).items():
            self.set_group(group_id, questions)

    def set_group(self, group_id: int, questions: Iterable[GroupQuestion]) -> None:
        self._groups[group_id] = sorted(questions, key=lambda q: q.order_number)

    def group_questions(self, group_id: int) -> List[GroupQuestion]:
        return list(self._groups.get(group_id, []))

    def get_group_question(self, group_id: int, question_id: int) -> Optional[GroupQuestion]:
        for question in self._groups.get(group_id, []):
            if question.question_id == question_id:
                return question
        return None

    def question_input_type(self, question_id: int) -> Optional[str]:
        for questions in self._groups.values():
            for question in questions:
                if question.question_id == question_id:
                    return question.input_type
        return None
