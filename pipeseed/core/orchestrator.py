"""Sequential provisioning of CI/CD repositories for a batch of input records."""
from typing import List, Optional, Tuple

from pipeseed.config.records import InputRecord, RecordError
from pipeseed.core.config import PipeseedConfig
from pipeseed.core.logger import get_logger
from pipeseed.core.substitution import substitute
from pipeseed.core.workspace import LocalWorkspace
from pipeseed.models.outcome import LaneOutcome, LaneStatus, LaneStep, RecordOutcome
from pipeseed.models.request import Kind, ProvisioningRequest, build_replacement_table
from pipeseed.services.gitlab.namespaces import NamespaceResolver
from pipeseed.services.gitlab.projects import ProjectProvisioner
from pipeseed.services.publisher import Publisher
from pipeseed.services.templates.source import TemplateSourceResolver

logger = get_logger(__name__)


class PipelineOrchestrator:
    """Runs every lane of every record, one at a time.

    A lane is one unit of work: resolve the group, create the project, fetch
    the template, substitute placeholders, publish. Failures are contained to
    the lane that raised; the next lane and the next record still run.
    """

    def __init__(
        self,
        config: PipeseedConfig,
        resolver: NamespaceResolver,
        provisioner: ProjectProvisioner,
        templates: TemplateSourceResolver,
        publisher: Publisher,
    ):
        """Initialize orchestrator.

        Args:
            config: Run configuration (folders, templates, naming, push protocol)
            resolver: Group find-or-create
            provisioner: Destination project creation
            templates: Template materialization
            publisher: Initial commit and push
        """
        self.config = config
        self.resolver = resolver
        self.provisioner = provisioner
        self.templates = templates
        self.publisher = publisher

    def build_requests(self, record: InputRecord) -> List[ProvisioningRequest]:
        """Expand a record into its CI and CD requests, in that order.

        A lane with no template (neither on the record nor configured) is left out.
        """
        table = build_replacement_table(record.application, record.team, record.replacements)
        requests = []
        for kind in (Kind.CI, Kind.CD):
            template = record.template_for(kind.value) or self.config.template_for(kind.value)
            if not template:
                logger.warning(f"{record.application}/{record.team}/{kind.value}: no template configured, lane skipped")
                continue

            override = record.namespace_for(kind.value)
            namespace_path: Optional[str] = None
            namespace_id: Optional[int] = None
            if override and override.isdigit():
                namespace_id = int(override)
            else:
                namespace_path = override or f"{self.config.folder_for(kind.value).strip('/')}/{record.team}"

            requests.append(ProvisioningRequest(
                application_name=record.application,
                team_name=record.team,
                kind=kind,
                template_location=template,
                replacement_table=table,
                project_name=self.config.project_name_format.format(
                    kind=kind.value, application=record.application, team=record.team
                ),
                namespace_path=namespace_path,
                namespace_id=namespace_id,
                delete_existing=record.delete_existing,
            ))
        return requests

    def run_lane(self, request: ProvisioningRequest) -> LaneOutcome:
        """Run one lane to completion. Never raises.

        The workspace is removed on every path once a template was materialized.
        """
        tag = request.label
        outcome = LaneOutcome(
            kind=request.kind,
            application=request.application_name,
            team=request.team_name,
            status=LaneStatus.FAILED,
            step=LaneStep.RESOLVE_NAMESPACE,
            project_name=request.project_name,
        )
        workspace: Optional[LocalWorkspace] = None

        try:
            if request.namespace_id is not None:
                namespace_id = request.namespace_id
            else:
                namespace_id = self.resolver.resolve_or_create(request.namespace)
            logger.info(f"[{tag}] Namespace {request.namespace or namespace_id} -> id {namespace_id}")

            outcome.step = LaneStep.PROVISION_PROJECT
            project = self.provisioner.provision(
                request.project_name, namespace_id, delete_existing=request.delete_existing
            )
            if project is None:
                logger.info(f"[{tag}] Project {request.project_name} already exists, skipping")
                outcome.status = LaneStatus.SKIPPED
                return outcome
            outcome.project = project

            outcome.step = LaneStep.MATERIALIZE_TEMPLATE
            workspace = self.templates.materialize(request.template_location, label=request.project_name)

            outcome.step = LaneStep.SUBSTITUTE
            outcome.files_modified = substitute(workspace.path, request.replacement_table)
            logger.info(f"[{tag}] Replaced placeholders in {outcome.files_modified} file(s)")

            outcome.step = LaneStep.PUBLISH
            self.publisher.publish(workspace, project.push_url(self.config.prefer_ssh))

            outcome.step = LaneStep.CLEANUP
            outcome.status = LaneStatus.DONE
        except Exception as e:
            outcome.status = LaneStatus.FAILED
            outcome.error = f"{type(e).__name__}: {e}"
            logger.error(f"[{tag}] Failed during {outcome.step.value}: {e}")
            logger.debug(f"[{tag}] Traceback", exc_info=True)
        finally:
            if workspace is not None:
                try:
                    workspace.cleanup()
                except OSError as e:
                    logger.error(f"[{tag}] Could not remove workspace {workspace.path}: {e}")
                    if outcome.status == LaneStatus.DONE:
                        outcome.status = LaneStatus.FAILED
                        outcome.error = f"{type(e).__name__}: {e}"

        if outcome.status == LaneStatus.DONE:
            logger.info(f"[{tag}] Provisioned {request.project_name}")
        return outcome

    def plan(self, records: List[InputRecord]) -> List[Tuple[InputRecord, List[ProvisioningRequest]]]:
        """Expand every record into its requests before any lane runs.

        Raises:
            RecordError: Naming the row of the first record that cannot be expanded
        """
        plans = []
        for record in records:
            try:
                plans.append((record, self.build_requests(record)))
            except ValueError as exc:
                raise RecordError(f"Row {record.row}: {exc}") from exc
        return plans

    def run_record(
        self,
        record: InputRecord,
        requests: Optional[List[ProvisioningRequest]] = None,
    ) -> RecordOutcome:
        """Run the CI lane, then the CD lane, for one record."""
        if requests is None:
            requests = self.build_requests(record)
        result = RecordOutcome(application=record.application, team=record.team)
        for request in requests:
            result.lanes.append(self.run_lane(request))
        return result

    def run(self, records: List[InputRecord]) -> List[RecordOutcome]:
        """Process every record in order.

        Raises:
            RecordError: If any record is invalid; nothing is provisioned then
        """
        plans = self.plan(records)
        outcomes = []
        for index, (record, requests) in enumerate(plans, start=1):
            logger.info(f"Record {index}/{len(plans)}: {record.application} ({record.team})")
            outcomes.append(self.run_record(record, requests))
        return outcomes
