"""Data models for pipeseed."""
from pipeseed.models.outcome import (
    LaneOutcome,
    LaneStatus,
    LaneStep,
    RecordOutcome,
    count_by_status,
)
from pipeseed.models.remote import Namespace, RemoteProject
from pipeseed.models.request import (
    APP_NAME_TOKEN,
    TEAM_NAME_TOKEN,
    Kind,
    NamespacePath,
    ProvisioningRequest,
    build_replacement_table,
)

__all__ = [
    'APP_NAME_TOKEN',
    'TEAM_NAME_TOKEN',
    'Kind',
    'NamespacePath',
    'ProvisioningRequest',
    'build_replacement_table',
    'Namespace',
    'RemoteProject',
    'LaneOutcome',
    'LaneStatus',
    'LaneStep',
    'RecordOutcome',
    'count_by_status',
]
