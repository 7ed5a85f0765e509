"""Per-lane and per-record results of a provisioning run."""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from pipeseed.models.remote import RemoteProject
from pipeseed.models.request import Kind


class LaneStatus(str, Enum):
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"


class LaneStep(str, Enum):
    """Steps of one unit of work, in execution order."""
    RESOLVE_NAMESPACE = "resolve_namespace"
    PROVISION_PROJECT = "provision_project"
    MATERIALIZE_TEMPLATE = "materialize_template"
    SUBSTITUTE = "substitute"
    PUBLISH = "publish"
    CLEANUP = "cleanup"


@dataclass
class LaneOutcome:
    """Result of one CI or CD lane.

    `step` is the last step entered: for FAILED lanes it names the step that
    raised, for SKIPPED lanes it is PROVISION_PROJECT.
    """
    kind: Kind
    application: str
    team: str
    status: LaneStatus
    step: LaneStep
    project_name: str = ""
    project: Optional[RemoteProject] = None
    files_modified: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != LaneStatus.FAILED


@dataclass
class RecordOutcome:
    """Results of all lanes for one input record."""
    application: str
    team: str
    lanes: List[LaneOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(lane.ok for lane in self.lanes)

    def lane(self, kind: Kind) -> Optional[LaneOutcome]:
        for outcome in self.lanes:
            if outcome.kind == kind:
                return outcome
        return None


def count_by_status(outcomes: List[RecordOutcome]) -> dict:
    """Tally lane statuses across a batch."""
    counts = {status: 0 for status in LaneStatus}
    for record in outcomes:
        for lane in record.lanes:
            counts[lane.status] += 1
    return counts
