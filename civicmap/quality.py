"""Credibility and lifecycle admission rules for fetched issues."""

from __future__ import annotations

from civicmap.config import QualityConfig
from civicmap.dedup import IssueSeenSet
from civicmap.models import Issue, QualityDecision

ALREADY_SEEN = "ALREADY_SEEN"
LOW_CREDIBILITY = "LOW_CREDIBILITY"
STATUS_NOT_ELIGIBLE = "STATUS_NOT_ELIGIBLE"


def evaluate_issue(issue: Issue, cfg: QualityConfig) -> QualityDecision:
    reasons: list[str] = []
    if issue.credibility < cfg.min_credibility:
        reasons.append(LOW_CREDIBILITY)
    if issue.status != cfg.eligible_status:
        reasons.append(STATUS_NOT_ELIGIBLE)
    return QualityDecision(issue_id=issue.id, admitted=not reasons, reason_codes=reasons)


class QualityFilter:
    """Admits eligible unseen issues and marks them seen.

    Rejected issues stay unmarked so a later sighting is evaluated again.
    """

    def __init__(self, cfg: QualityConfig) -> None:
        self.cfg = cfg

    def admit(self, issues: list[Issue], seen: IssueSeenSet) -> tuple[list[Issue], list[QualityDecision]]:
        admitted: list[Issue] = []
        decisions: list[QualityDecision] = []
        for issue in issues:
            if issue.id in seen:
                decisions.append(QualityDecision(issue_id=issue.id, admitted=False, reason_codes=[ALREADY_SEEN]))
                continue
            decision = evaluate_issue(issue, self.cfg)
            if decision.admitted and not seen.add(issue.id):
                decision = QualityDecision(issue_id=issue.id, admitted=False, reason_codes=[ALREADY_SEEN])
            decisions.append(decision)
            if decision.admitted:
                admitted.append(issue)
        return admitted, decisions
