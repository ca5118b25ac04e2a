from typing import List, Optional, TypedDict


class Settings(TypedDict):
    standards_path: str
    pinned_dir: str
    pilot_dir: str


class AdoptionConfig(TypedDict, total=False):
    project_name: str
    agent_role: str
    project_description: str
    priority_one: str
    priority_two: str
    priority_three: str
    standards_topics: str
    deviation_policy: str
    dev_cmd: str
    test_cmd: str
    coverage_cmd: str
    lint_cmd: str
    typecheck_cmd: str
    build_cmd: str


class Commands(TypedDict):
    dev: str
    test: str
    coverage: str
    lint: str
    typecheck: str
    build: str


class CriticalPaths(TypedDict):
    entry: str
    config: str
    routes: str
    services: str
    types: str


class StackProfile(TypedDict):
    stack: str
    language: str
    language_version: str
    runtime: str
    runtime_version: str
    framework: str
    framework_version: str
    testing: str
    testing_version: str
    commands: Commands
    critical_paths: CriticalPaths


class PinMetadata(TypedDict):
    source_repo_path: str
    source_repo_remote: str
    pinned_ref: str
    resolved_sha: str
    snapshot_name: str
    pinned_at_utc: str


class PinResult(TypedDict):
    status: str
    snapshot_path: str
    relative_path: str
    metadata: PinMetadata


class MergeResult(TypedDict):
    agents_path: str
    standards_path: str
    changed: bool
    backup_path: Optional[str]


class AdoptResult(TypedDict):
    operation: str
    project_dir: str
    agents_path: str
    standards_path: str
    stack: Optional[str]
    backup_path: Optional[str]
    claude_status: str
    pin: Optional[PinResult]


class Finding(TypedDict):
    severity: str
    message: str
    detail: Optional[str]


class ValidationReport(TypedDict):
    target: str
    findings: List[Finding]
    errors: int
    warnings: int


class PilotReadinessReport(ValidationReport):
    weekly_checkins: int
    retrospectives: int


class PilotPrepareResult(TypedDict):
    pilot_dir: str
    written: List[str]
    skipped: List[str]
    adoption: AdoptResult


class PilotSummary(TypedDict):
    output_path: str
    weekly_checkins: int
    retrospectives: int
    readiness: PilotReadinessReport


class StaleGuide(TypedDict):
    path: str
    age_days: int


class FreshnessReport(TypedDict):
    standards_path: str
    total: int
    stale: List[StaleGuide]
    stale_percent: float
