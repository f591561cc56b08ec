import logging
from dataclasses import dataclass, field
from typing import Any

from school_backend.core import config
from school_backend.document_store import DocumentStore
from school_backend.services.references import SubjectRef, normalize_reference, parent_path_of

logger = logging.getLogger(__name__)

ENROLLMENTS_FIELD = 'enrolled_classes'


class UserNotFoundError(Exception):
    """Raised when the user whose enrollments are requested does not exist."""


@dataclass
class EnrollmentResult:
    subjects: list[dict[str, Any]] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    reference_count: int = 0


def _warn(result: EnrollmentResult, message: str) -> None:
    logger.warning(message)
    result.warnings.append(message)


def fetch_enrolled_subjects_with_parents(store: DocumentStore, user_id: str) -> EnrollmentResult:
    """Load every subject a user is enrolled in together with its parent class.

    All subject and class documents are read with a single ``get_all`` call.
    Malformed or dangling references are skipped with a warning; a subject whose
    class document is missing is kept with ``parentClass`` set to None.
    """
    user = store.get_document(config.USERS_COLLECTION, user_id)
    if user is None:
        raise UserNotFoundError('User profile not found.')

    enrolled_refs = user.data.get(ENROLLMENTS_FIELD)
    if not isinstance(enrolled_refs, list):
        enrolled_refs = []

    result = EnrollmentResult(reference_count=len(enrolled_refs))
    pairs: list[tuple[SubjectRef, str]] = []

    for item in enrolled_refs:
        subject = normalize_reference(item)
        if subject is None:
            _warn(result, f'Skipping invalid reference found in user profile: {item!r}')
            continue

        parent_path = parent_path_of(subject)
        if parent_path is None:
            _warn(result, f'Could not determine parent class path for subject: {subject.path}')
            continue

        pairs.append((subject, parent_path))

    if not pairs:
        return result

    targets: list[str] = []
    for subject, parent_path in pairs:
        targets.append(subject.path)
        targets.append(parent_path)

    snapshots = store.get_all(targets)

    for index, (subject, parent_path) in enumerate(pairs):
        subject_snapshot = snapshots[2 * index]
        class_snapshot = snapshots[2 * index + 1]

        if subject_snapshot is None:
            _warn(result, f'Subject document not found at: {subject.path}')
            continue

        parent_class = None
        if class_snapshot is not None:
            parent_class = {'id': class_snapshot.id, **class_snapshot.data}
        else:
            _warn(result, f'Parent class not found at: {parent_path}')

        result.subjects.append({
            'id': subject_snapshot.id,
            'refPath': subject_snapshot.path,
            **subject_snapshot.data,
            'parentClass': parent_class,
        })

    return result
