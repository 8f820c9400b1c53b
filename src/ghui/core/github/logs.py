"""
Parsing of GitHub Actions job logs.

``gh run view --job <id> --log`` prints one line per log line in the form::

    <job name>\\t<step name>\\t<timestamp> <message>

Lines are grouped into steps by the step column, in order of first
appearance. A step is failed when it logged an ``##[error]`` line.
"""

from __future__ import annotations

import re

from ghui.core.github.models import JobLogs, JobStep

ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")
TIMESTAMP_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?Z ?")
ERROR_MARKER = "##[error]"
GROUP_MARKERS = ("##[group]", "##[endgroup]")

# Lines that usually identify a failing test in common runners.
TEST_FAILURE_RE = re.compile(
    r"(^FAILED\s|^FAIL\s|\bfailed\b.*\btests?\b|^\s*---\s*FAIL:|AssertionError|^\s*E\s{2,}|"
    r"^Error:|panicked at|##\[error\])",
    re.IGNORECASE,
)


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences."""
    return ANSI_ESCAPE_RE.sub("", text)


def parse_gh_job_log(raw: str) -> list[JobStep]:
    """
    Split raw ``gh run view --log`` output into steps.

    Args:
        raw: Raw log output

    Returns:
        Steps in order of appearance; empty when no line is tab-separated
    """
    order: list[str] = []
    lines_by_step: dict[str, list[str]] = {}
    failed: set[str] = set()

    for line in raw.splitlines():
        parts = line.split("\t", 2)
        if len(parts) < 3:
            continue
        step_name = parts[1].strip() or "(unnamed step)"
        message = strip_ansi(TIMESTAMP_RE.sub("", parts[2]))

        if step_name not in lines_by_step:
            order.append(step_name)
            lines_by_step[step_name] = []
        if ERROR_MARKER in message:
            failed.add(step_name)
        for marker in GROUP_MARKERS:
            message = message.replace(marker, "")
        lines_by_step[step_name].append(message)

    return [
        JobStep(
            name=name,
            status="failed" if name in failed else "success",
            output="\n".join(lines_by_step[name]).strip() or "(No output)",
            is_failed=name in failed,
        )
        for name in order
    ]


def build_job_logs(job_id: int, job_name: str, raw: str) -> JobLogs:
    """Wrap raw log output in JobLogs, with steps when the log is structured."""
    content = strip_ansi(raw)
    steps = parse_gh_job_log(raw)
    if not content.strip():
        content = "No log output available."
    return JobLogs(
        job_id=job_id,
        job_name=job_name,
        content=content,
        steps=steps or None,
    )


def extract_test_failures(logs: JobLogs) -> str:
    """
    Collect the lines describing failures from a job log.

    Uses failed steps when the log is structured; otherwise scans the raw
    content for common test-runner failure lines.

    Returns:
        Failure text, or an empty string when nothing looks like a failure
    """
    failed_steps = logs.failed_steps
    if failed_steps:
        sections = []
        for step in failed_steps:
            matches = [line for line in step.output.splitlines() if TEST_FAILURE_RE.search(line)]
            body = "\n".join(matches) if matches else step.output
            sections.append(f"== {step.name} ==\n{body}")
        return "\n\n".join(sections)

    matches = [line for line in logs.content.splitlines() if TEST_FAILURE_RE.search(line)]
    return "\n".join(matches)
