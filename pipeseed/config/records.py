"""Loading provisioning input records from CSV, spreadsheet (.xlsx) or YAML files."""
import csv
import re
import zipfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pipeseed.core.logger import get_logger
from pipeseed.models.request import NamespacePath

logger = get_logger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_SEPARATORS = re.compile(r"[\s\-.]+")

# Accepted header spellings -> canonical field
COLUMN_ALIASES = {
    'application': 'application',
    'app': 'application',
    'app_name': 'application',
    'application_name': 'application',
    'new_project_name': 'application',
    'project_name': 'application',
    'projectname': 'application',
    'team': 'team',
    'team_name': 'team',
    'owning_team': 'team',
    'owner': 'team',
    'ci_template': 'ci_template',
    'ci_template_url': 'ci_template',
    'template': 'ci_template',
    'gitlab_repo_url': 'ci_template',
    'cd_template': 'cd_template',
    'cd_template_url': 'cd_template',
    'namespace': 'namespace',
    'namespace_id': 'namespace',
    'namespaceid': 'namespace',
    'ci_namespace': 'ci_namespace',
    'cd_namespace': 'cd_namespace',
    'replacements': 'replacements',
    'replacement_values': 'replacements',
    'replace': 'replacements',
    'values': 'replacements',
    'delete_existing': 'delete_existing',
    'delete': 'delete_existing',
}


class RecordError(Exception):
    """Raised when an input file or one of its rows is malformed."""


def normalize_header(header: str) -> str:
    """Map a column header to its canonical field name ('' if unknown)."""
    snake = _CAMEL_BOUNDARY.sub('_', header.strip())
    snake = _SEPARATORS.sub('_', snake).strip('_').lower()
    return COLUMN_ALIASES.get(snake, '')


def parse_replacements(raw: Any) -> Dict[str, str]:
    """Parse `key=value,key=value` into an ordered mapping.

    Each pair is trimmed and split on its first '='. Empty pairs are ignored.
    A mapping (from YAML) is accepted as-is.

    Raises:
        RecordError: If a pair has no '=' or an empty key
    """
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return {str(k): '' if v is None else str(v) for k, v in raw.items()}

    table: Dict[str, str] = {}
    for pair in str(raw).split(','):
        pair = pair.strip()
        if not pair:
            continue
        if '=' not in pair:
            raise RecordError(f"Replacement '{pair}' is not in key=value form")
        key, value = pair.split('=', 1)
        key = key.strip()
        if not key:
            raise RecordError(f"Replacement '{pair}' has an empty key")
        table[key] = value.strip()
    return table


def parse_delete_flag(raw: Any) -> bool:
    """Only the literal string "true" (any case) or a YAML true enables deletion."""
    if isinstance(raw, bool):
        return raw
    return isinstance(raw, str) and raw.strip().lower() == 'true'


class InputRecord(BaseModel):
    """One row of the input file: an application owned by a team."""

    model_config = ConfigDict(extra='forbid', frozen=True)

    row: int = 0
    application: str
    team: str
    ci_template: Optional[str] = None
    cd_template: Optional[str] = None
    namespace: Optional[str] = None
    ci_namespace: Optional[str] = None
    cd_namespace: Optional[str] = None
    replacements: Dict[str, str] = Field(default_factory=dict)
    delete_existing: bool = False

    @field_validator('application', 'team')
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        if '/' in v or any(ch.isspace() for ch in v):
            raise ValueError(f"'{v}' must not contain '/' or whitespace")
        return v

    @field_validator('ci_template', 'cd_template', 'namespace', 'ci_namespace', 'cd_namespace')
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator('namespace', 'ci_namespace', 'cd_namespace')
    @classmethod
    def validate_namespace(cls, v: Optional[str]) -> Optional[str]:
        """A namespace override is a numeric group id or a group path."""
        if v is None or v.isdigit():
            return v
        return NamespacePath(v).full_path

    def namespace_for(self, kind: str) -> Optional[str]:
        """Per-lane namespace override, falling back to the shared one."""
        specific = self.ci_namespace if kind == 'ci' else self.cd_namespace
        return specific or self.namespace

    def template_for(self, kind: str) -> Optional[str]:
        return self.ci_template if kind == 'ci' else self.cd_template


def record_from_mapping(data: Dict[str, Any], row: int) -> InputRecord:
    """Build an InputRecord from one raw row.

    Raises:
        RecordError: With the row number when the row is invalid
    """
    fields: Dict[str, Any] = {'row': row}
    for header, value in data.items():
        if header is None:
            raise RecordError(f"Row {row}: more values than columns")
        canonical = normalize_header(str(header))
        if not canonical:
            logger.debug(f"Row {row}: ignoring column '{header}'")
            continue
        if canonical in fields and fields[canonical] not in (None, ''):
            continue
        fields[canonical] = value

    try:
        fields['replacements'] = parse_replacements(fields.get('replacements'))
    except RecordError as exc:
        raise RecordError(f"Row {row}: {exc}") from exc
    fields['delete_existing'] = parse_delete_flag(fields.get('delete_existing'))

    for key in ('application', 'team'):
        if fields.get(key) is None:
            raise RecordError(f"Row {row}: missing required '{key}' column")
        fields[key] = str(fields[key])
    for key in ('ci_template', 'cd_template', 'namespace', 'ci_namespace', 'cd_namespace'):
        if fields.get(key) is not None:
            fields[key] = str(fields[key])

    try:
        return InputRecord(**fields)
    except ValidationError as exc:
        problems = '; '.join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise RecordError(f"Row {row}: {problems}") from exc


def _is_blank(data: Dict[str, Any]) -> bool:
    return all(value is None or str(value).strip() == '' for value in data.values())


def iter_records(rows: Iterable[Dict[str, Any]], first_row: int = 1) -> List[InputRecord]:
    """Parse raw row mappings, skipping fully blank rows."""
    records: List[InputRecord] = []
    for index, data in enumerate(rows, start=first_row):
        if not isinstance(data, dict):
            raise RecordError(f"Row {index}: expected a mapping")
        if _is_blank(data):
            continue
        records.append(record_from_mapping(data, index))
    return records


def _load_csv(path: Path) -> List[InputRecord]:
    with open(path, newline='', encoding='utf-8-sig') as f:
        reader = csv.DictReader(f)
        if not reader.fieldnames:
            raise RecordError(f"{path} has no header row")
        # data starts on line 2, after the header
        return iter_records(reader, first_row=2)


def _load_yaml(path: Path) -> List[InputRecord]:
    try:
        raw = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        raise RecordError(f"Failed to parse {path}: {exc}") from exc

    if raw is None:
        return []
    if isinstance(raw, dict):
        raw = raw.get('records', raw.get('applications'))
    if not isinstance(raw, list):
        raise RecordError(f"{path} must contain a list of records (or a 'records' list)")
    return iter_records(raw)


def _load_xlsx(path: Path) -> List[InputRecord]:
    """Read the first worksheet; its first row holds the column headers."""
    try:
        workbook = load_workbook(path, read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, OSError) as exc:
        raise RecordError(f"Failed to read {path}: {exc}") from exc

    try:
        rows = workbook.worksheets[0].iter_rows(values_only=True)
        header = next(rows, None)
        if header is None or all(cell is None for cell in header):
            raise RecordError(f"{path} has no header row")
        headers = [None if cell is None else str(cell) for cell in header]
        mappings = (
            {name: value for name, value in zip(headers, values) if name is not None}
            for values in rows
        )
        # data starts on row 2, after the header
        return iter_records(mappings, first_row=2)
    finally:
        workbook.close()


def load_records(path: str) -> List[InputRecord]:
    """Load input records from a .csv, .xlsx, .yml or .yaml file.

    Raises:
        RecordError: On a missing file, unsupported format or malformed row
    """
    file_path = Path(path).expanduser()
    if not file_path.exists():
        raise RecordError(f"Input file not found: {file_path}")

    suffix = file_path.suffix.lower()
    if suffix == '.csv':
        records = _load_csv(file_path)
    elif suffix == '.xlsx':
        records = _load_xlsx(file_path)
    elif suffix in ('.yml', '.yaml'):
        records = _load_yaml(file_path)
    else:
        raise RecordError(f"Unsupported input format '{suffix}'. Use .csv, .xlsx, .yml or .yaml")

    logger.info(f"Loaded {len(records)} record(s) from {file_path}")
    return records
