from __future__ import annotations


class ScoringError(Exception):
    pass


class MissingScore(ScoringError):
    def __init__(self, skill_id: int) -> None:
        super().__init__(f"No effective score recorded for skill {skill_id}")
        self.skill_id = skill_id


class InvalidDivider(ScoringError):
    def __init__(self, divider: float | None) -> None:
        super().__init__(f"Divider must be greater than zero, got {divider}")
        self.divider = divider


class UnknownSkillId(ScoringError):
    def __init__(self, skill_id: int) -> None:
        super().__init__(f"Skill id {skill_id} is outside every category range")
        self.skill_id = skill_id


class NoScoreData(ScoringError):
    def __init__(self, evaluation_id: str) -> None:
        super().__init__(f"Evaluation {evaluation_id} has not been scored yet")
        self.evaluation_id = evaluation_id
