from typing import Dict, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from tutorhub.core.errors import NotFound
from tutorhub.models.orm import (
    Assessment, Child, ClientProfile, Material, ParticipantKind, ParticipantRef, Question, Submission,
)


def get_assessment(db: Session, assessment_id: int) -> Assessment:
    a = db.get(Assessment, assessment_id)
    if a is None:
        raise NotFound("Assessment not found", assessment_id=assessment_id)
    return a


def get_question(db: Session, question_id: int) -> Question:
    q = db.get(Question, question_id)
    if q is None:
        raise NotFound("Question not found", question_id=question_id)
    return q


def get_submission(db: Session, submission_id: int) -> Submission:
    s = db.get(Submission, submission_id)
    if s is None:
        raise NotFound("Submission not found", submission_id=submission_id)
    return s


def get_materials(db: Session, material_ids: Iterable[int]) -> list:
    ids = list(dict.fromkeys(material_ids))
    if not ids:
        return []
    found = db.scalars(select(Material).where(Material.id.in_(ids))).all()
    missing = set(ids) - {m.id for m in found}
    if missing:
        raise NotFound("Material not found", material_ids=sorted(missing))
    return list(found)


def participant_exists(db: Session, ref: ParticipantRef) -> bool:
    model = Child if ref.kind == ParticipantKind.CHILD.value else ClientProfile
    return db.get(model, ref.id) is not None


def participant_owned_by(db: Session, ref: ParticipantRef, user_id: str) -> bool:
    """A child belongs to its parent account; a client profile to its own account."""
    if ref.kind == ParticipantKind.CHILD.value:
        child = db.get(Child, ref.id)
        return child is not None and child.parent_id is not None and child.parent_id == user_id
    profile = db.get(ClientProfile, ref.id)
    return profile is not None and profile.user_id is not None and profile.user_id == user_id


def participant_names(db: Session, refs: Iterable[ParticipantRef]) -> Dict[ParticipantRef, str]:
    """Resolve display names for participants; unknown ids are simply absent."""
    refs = set(refs)
    child_ids = [r.id for r in refs if r.kind == ParticipantKind.CHILD.value]
    client_ids = [r.id for r in refs if r.kind == ParticipantKind.CLIENT.value]
    names: Dict[ParticipantRef, str] = {}
    if child_ids:
        for c in db.scalars(select(Child).where(Child.id.in_(child_ids))):
            names[ParticipantRef(ParticipantKind.CHILD.value, c.id)] = c.name
    if client_ids:
        for p in db.scalars(select(ClientProfile).where(ClientProfile.id.in_(client_ids))):
            if p.display_name:
                names[ParticipantRef(ParticipantKind.CLIENT.value, p.id)] = p.display_name
    return names
