"""Resolve enrollment references into subject and parent class paths."""

from dataclasses import dataclass
from typing import Any, Union

from school_backend.document_store import DocumentReference, normalize_path

PATH_SEPARATOR = '/'
SUBJECTS_SEGMENT = 'subjects'
MIN_SUBJECT_SEGMENTS = 5


def _parent_of_segments(segments: list[str]) -> str | None:
    if len(segments) >= MIN_SUBJECT_SEGMENTS and segments[-2] == SUBJECTS_SEGMENT:
        return PATH_SEPARATOR + PATH_SEPARATOR.join(segments[:-2])
    return None


def derive_parent_path(ref: Any) -> str | None:
    """Return the parent class path of a subject reference, or None.

    ``/school/s1/classes/FirstA/subjects/maths`` -> ``/school/s1/classes/FirstA``
    """
    if isinstance(ref, str):
        if not ref.startswith(PATH_SEPARATOR):
            return None
        path = ref
    else:
        path = getattr(ref, 'path', None)
        if not isinstance(path, str) or not path:
            return None

    segments = [segment for segment in path.split(PATH_SEPARATOR) if segment]
    return _parent_of_segments(segments)


@dataclass(frozen=True)
class ReferenceHandle:
    reference: DocumentReference

    @property
    def path(self) -> str:
        return self.reference.path


@dataclass(frozen=True)
class PathString:
    raw: str

    @property
    def path(self) -> str:
        return normalize_path(self.raw)


SubjectRef = Union[ReferenceHandle, PathString]


def normalize_reference(item: Any) -> SubjectRef | None:
    if isinstance(item, DocumentReference):
        return ReferenceHandle(item)
    if isinstance(item, str) and item.startswith(PATH_SEPARATOR):
        return PathString(item)
    return None


def parent_path_of(subject: SubjectRef) -> str | None:
    if isinstance(subject, ReferenceHandle):
        return derive_parent_path(subject.reference)
    return derive_parent_path(subject.raw)
