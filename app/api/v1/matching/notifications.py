"""Post-match payloads for the email collaborator. Delivery and formatting happen elsewhere."""

from typing import List

from app.core.units import Unit

from .schemas import MatchNotice


def build_match_notices(unit1: Unit, unit2: Unit) -> List[MatchNotice]:
    """One notice per participating school, listing the schools on the other side."""
    notices: List[MatchNotice] = []
    for own, other in ((unit1, unit2), (unit2, unit1)):
        partner_names = [s.school_name for s in other.schools]
        for school in own.schools:
            notices.append(
                MatchNotice(
                    school_id=school.id,
                    school_name=school.school_name,
                    teacher_name=school.teacher_name,
                    teacher_email=school.teacher_email,
                    partner_school_names=partner_names,
                )
            )
    return notices
