from typing import Dict, Tuple

# --- FILES & LOCATIONS ---
AGENTS_FILENAME = "AGENTS.md"
CLAUDE_FILENAME = "CLAUDE.md"
PIN_METADATA_FILENAME = ".abp-pin.json"

STANDARDS_HOME_ENV = "AGENTIC_BEST_PRACTICES_HOME"
DEFAULT_STANDARDS_DIRNAME = "agentic-best-practices"
LEGACY_STANDARDS_HOME = "~/agentic-best-practices"
DEFAULT_PINNED_DIR = ".agentic-best-practices/pinned"
DEFAULT_PILOT_DIR = ".agentic-best-practices/pilot"
PYPROJECT_TOOL_TABLE = "agentic-best-practices"

# --- MODES ---
ADOPTION_MODES = ("latest", "pinned")
EXISTING_MODES = ("fail", "overwrite", "merge")
CLAUDE_MODES = ("auto", "symlink", "copy", "skip")

# --- MANAGED BLOCK ---
MANAGED_BEGIN = "<!-- BEGIN MANAGED: STANDARDS_REFERENCE -->"
MANAGED_END = "<!-- END MANAGED: STANDARDS_REFERENCE -->"
STANDARDS_HEADING = "## Standards Reference"
STANDARDS_PATH_LEAD = "This project follows organizational standards defined in"
DEVIATION_POLICY_LEAD = "**Deviation policy**:"
SETUP_INSTRUCTIONS_MARKER = "SETUP INSTRUCTIONS (delete this block after setup):"
TODO_COMMAND_PREFIX = "TODO: set command for"

DEFAULT_DEVIATION_POLICY = (
    "Do not deviate from these standards without explicit approval. "
    "If deviation is necessary, document it in the Project-Specific Overrides "
    "section with rationale."
)

DEFAULT_STANDARDS_TOPICS: Tuple[Tuple[str, str], ...] = (
    ("Error handling", "guides/error-handling/error-handling.md"),
    ("Logging", "guides/logging-practices/logging-practices.md"),
    ("API design", "guides/api-design/api-design.md"),
    ("Documentation", "guides/documentation-guidelines/documentation-guidelines.md"),
    ("Code style", "guides/coding-guidelines/coding-guidelines.md"),
    ("Comments", "guides/commenting-guidelines/commenting-guidelines.md"),
)

STANDARDS_BLOCK_TEMPLATE = """\
{begin}
## Standards Reference

This project follows organizational standards defined in `{path}/`.

**Before implementing**, consult the relevant guide:

| Topic | Guide |
| --- | --- |
{rows}

For other topics, check `{path}/README.md` for the full guide index (all guides are in `{path}/guides/`).

**Deviation policy**: {policy}
{end}"""

# --- RENDER DEFAULTS ---
DEFAULT_AGENT_ROLE = "project-focused software engineer"
DEFAULT_PROJECT_DESCRIPTION = "this project"
DEFAULT_PRIORITIES = (
    "Correctness over speed",
    "Security over convenience",
    "Readability over cleverness",
)
UNRESOLVED_VALUE = "TBD"

# Adoption config file keys (KEY=VALUE) mapped to option names.
CONFIG_KEYS: Dict[str, str] = {
    "PROJECT_NAME": "project_name",
    "AGENT_ROLE": "agent_role",
    "PROJECT_DESCRIPTION": "project_description",
    "PRIORITY_ONE": "priority_one",
    "PRIORITY_TWO": "priority_two",
    "PRIORITY_THREE": "priority_three",
    "STANDARDS_TOPICS": "standards_topics",
    "DEVIATION_POLICY": "deviation_policy",
    "DEV_CMD": "dev_cmd",
    "TEST_CMD": "test_cmd",
    "COVERAGE_CMD": "coverage_cmd",
    "LINT_CMD": "lint_cmd",
    "TYPECHECK_CMD": "typecheck_cmd",
    "BUILD_CMD": "build_cmd",
}

COMMAND_KEYS = ("dev", "test", "coverage", "lint", "typecheck", "build")

# Bracketed placeholders of the AGENTS.md template, grouped by what binds them.
IDENTITY_PLACEHOLDERS = {
    "project_name": "[Project Name]",
    "agent_role": '[specific role, e.g., "security-conscious backend developer"]',
    "project_description": "[brief project description]",
    "priority_one": '[First priority, e.g., "Security over convenience"]',
    "priority_two": '[Second priority, e.g., "Correctness over speed"]',
    "priority_three": '[Third priority, e.g., "Readability over cleverness"]',
}

STACK_PLACEHOLDERS = {
    "language": "[e.g., TypeScript]",
    "language_version": "[e.g., 5.x]",
    "framework": "[e.g., Express]",
    "framework_version": "[e.g., 4.x]",
    "runtime": "[e.g., Node.js]",
    "runtime_version": "[e.g., 20+]",
    "database": "[e.g., PostgreSQL]",
    "database_version": "[e.g., 15]",
    "testing": "[e.g., Jest]",
    "testing_version": "[e.g., 29.x]",
}

COMMAND_PLACEHOLDERS = {
    "dev": "[npm run dev]",
    "test": "[npm test]",
    "coverage": "[npm run test:coverage]",
    "lint": "[npm run lint]",
    "typecheck": "[npm run typecheck]",
    "build": "[npm run build]",
}

CRITICAL_PATH_PLACEHOLDERS = {
    "entry": "[src/index.ts]",
    "config": "[src/config/]",
    "routes": "[src/routes/]",
    "services": "[src/services/]",
    "types": "[src/types/]",
}

# Placeholders that always render to the same text.
FIXED_PLACEHOLDER_VALUES: Dict[str, str] = {
    "[Start dev server with hot reload]": "Start development environment",
    "[Run all tests]": "Run the default test suite",
    "[Run tests with coverage report]": "Run tests with coverage",
    "[Run linter]": "Run lint checks",
    "[Run type checker]": "Run type checks",
    "[Production build]": "Build production artifacts",
    "[Add your own]": "None",
    "[Rationale]": "N/A",
    "[Topic]": "Topic",
    "[What best-practices says]": "Describe the standard",
    "[What this project does instead]": "Describe the override",
    "[Why the deviation is necessary]": "Explain rationale",
    "[Date]": "YYYY-MM-DD",
}

TEMPLATE_PLACEHOLDERS: Tuple[str, ...] = (
    tuple(IDENTITY_PLACEHOLDERS.values())
    + tuple(STACK_PLACEHOLDERS.values())
    + tuple(COMMAND_PLACEHOLDERS.values())
    + tuple(CRITICAL_PATH_PLACEHOLDERS.values())
    + tuple(FIXED_PLACEHOLDER_VALUES)
)

# --- VALIDATION ---
RECOMMENDED_HEADINGS = ("## Agent Role", "## Tech Stack", "## Key Commands", "## Boundaries")
MIN_GUIDE_REFERENCES = 3
TOKEN_ENCODING = "cl100k_base"
AGENTS_TOKEN_BUDGET = 8000  # Instruction files past this crowd out task context

# --- NAVIGATION ---
NAVIGATION_DIRS = ("guides", "adoption")
MAX_CONTENTS_ENTRIES = 20
MAX_ANCHORS_PER_GUIDE = 200

# --- PILOT ---
PILOT_KICKOFF = "kickoff.md"
PILOT_WEEKLY_TEMPLATE = "weekly-checkin-template.md"
PILOT_RETRO_TEMPLATE = "retrospective-template.md"
PILOT_README = "README.md"
PILOT_SUMMARY = "pilot-summary.md"
GUIDE_FRESHNESS_DAYS = 180
STALE_GUIDE_PERCENT_ALERT = 25

# --- TEMPLATES ---
AGENTS_TEMPLATE = """\
# AGENTS.md - [Project Name]

<!--
SETUP INSTRUCTIONS (delete this block after setup):
1. Replace every [bracketed] placeholder with a project-specific value.
2. Leave the managed Standards Reference block to the adoption tooling.
3. Run `abp validate-adoption --project-dir .` once the file is complete.
-->

{{STANDARDS_REFERENCE}}

## Agent Role

You are a [specific role, e.g., "security-conscious backend developer"] working on [brief project description].

**Priorities** (in order):

1. [First priority, e.g., "Security over convenience"]
2. [Second priority, e.g., "Correctness over speed"]
3. [Third priority, e.g., "Readability over cleverness"]

## Tech Stack

| Layer | Technology | Version |
| --- | --- | --- |
| Language | [e.g., TypeScript] | [e.g., 5.x] |
| Framework | [e.g., Express] | [e.g., 4.x] |
| Runtime | [e.g., Node.js] | [e.g., 20+] |
| Database | [e.g., PostgreSQL] | [e.g., 15] |
| Testing | [e.g., Jest] | [e.g., 29.x] |

## Key Commands

```bash
[npm run dev]  # [Start dev server with hot reload]
[npm test]  # [Run all tests]
[npm run test:coverage]  # [Run tests with coverage report]
[npm run lint]  # [Run linter]
[npm run typecheck]  # [Run type checker]
[npm run build]  # [Production build]
```

## Critical Paths

| Path | Purpose |
| --- | --- |
| `[src/index.ts]` | Application entry point |
| `[src/config/]` | Configuration |
| `[src/routes/]` | Request handling and routing |
| `[src/services/]` | Business logic |
| `[src/types/]` | Shared types and schemas |

## Boundaries

| Level | Action | Why |
| --- | --- | --- |
| **Always** | Run tests and lint before committing | Quality gate |
| **Always** | Check `~/agentic-best-practices/README.md` before introducing a new pattern | Consistency |
| **Ask first** | Adding or upgrading dependencies | Supply-chain review |
| **Ask first** | Changing public interfaces | Downstream consumers |
| **Never** | Commit secrets or credentials | Security |
| **Never** | [Add your own] | [Rationale] |

## Project-Specific Overrides

| Topic | Standard | Override | Rationale | Date |
| --- | --- | --- | --- | --- |
| [Topic] | [What best-practices says] | [What this project does instead] | [Why the deviation is necessary] | [Date] |
"""

PILOT_KICKOFF_TEMPLATE = """\
# Pilot Kickoff: {{PROJECT_NAME}}

| Field | Value |
| --- | --- |
| Project | {{PROJECT_NAME}} |
| Project directory | {{PROJECT_DIR}} |
| Pilot owner | {{PILOT_OWNER}} |
| Start date | {{START_DATE}} |
| Adoption mode | {{ADOPTION_MODE}} |
| Standards path | {{STANDARDS_PATH}} |

## Setup Checklist

| Item | Status |
| --- | --- |
| AGENTS.md rendered and validated | Pending |
| CLAUDE.md present (symlink or copy) | Pending |
| Team briefed on the deviation policy | Pending |
| Weekly check-in cadence agreed | Pending |

## Baseline

| Metric | Value |
| --- | --- |
| Open defects at start | TBD |
| Average review turnaround | TBD |
| Agent-assisted changes per week | TBD |

## Goals

1. TBD
2. TBD
3. TBD
"""

PILOT_WEEKLY_TEMPLATE_TEXT = """\
# Weekly Check-in: {{PROJECT_NAME}}

Copy this file to `weekly-NN.md` each week and fill in the table.

| Field | Value |
| --- | --- |
| Reporting Period | TBD |
| Guides consulted | TBD |
| Blockers encountered | TBD |
| Critical defects linked to guidance | TBD |
| Deviations recorded | TBD |

## Friction Notes

- TBD

## Feedback to File

Use `{{STANDARDS_PATH}}/docs/templates/feedback-template.md` for each concrete gap.
"""

PILOT_RETRO_TEMPLATE_TEXT = """\
# Pilot Retrospective: {{PROJECT_NAME}}

Copy this file to `retrospective.md` (or `retrospective-YYYY-MM-DD.md`) when the pilot ends.

| Field | Value |
| --- | --- |
| Pilot owner | {{PILOT_OWNER}} |
| Pilot start | {{START_DATE}} |
| Adoption mode used | {{ADOPTION_MODE}} |
| Continue rollout / pause / iterate | TBD |
| Preferred adoption mode (latest or pinned) | TBD |
| Follow-up owners and deadlines | TBD |

## What Worked

- TBD

## What Did Not Work

- TBD

## Change Requests

- TBD
"""

PILOT_README_TEMPLATE = """\
# Adoption Pilot Artifacts

Generated by `abp prepare-pilot-project` on {start_date}.

| File | Purpose |
| --- | --- |
| kickoff.md | Pilot setup checklist and baseline metadata |
| weekly-checkin-template.md | Weekly progress and friction tracking |
| retrospective-template.md | End-of-pilot outcomes and decisions |

| Context | Value |
| --- | --- |
| Project | {project_name} |
| Project directory | {project_dir} |
| Adoption mode | {adoption_mode} |
| Standards path in AGENTS | {standards_path} |
| Pilot owner | {pilot_owner} |

## Suggested Workflow

1. Fill `kickoff.md` before week 1 starts.
2. Duplicate `weekly-checkin-template.md` each week (for example, `weekly-01.md`).
3. File concrete issues using `{standards_path}/docs/templates/feedback-template.md` when guidance fails.
4. Complete `retrospective-template.md` at pilot end and link resulting change requests.
"""
