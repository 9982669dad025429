"""Root-cause analysis for failing CI jobs on a merge request."""

from __future__ import annotations

from dataclasses import replace
from typing import Sequence

from mrlens_core.analysis.common import ERROR_PLACEHOLDER, run_batch
from mrlens_core.analysis.merge_request import render_changes
from mrlens_core.analysis.tags import extract_tag
from mrlens_core.gh.entities import Change, Job, MergeRequest
from mrlens_core.providers.base import FAST

FAILURE_REASON_MAX_TOKENS = 2048

# Failures are almost always explained at the end of the log.
_TRACE_TAIL_CHARS = 12_000
_CHANGES_CHARS = 30_000


def find_reasons_for_failure(
    llm,
    client,
    project_path: str,
    jobs: Sequence[Job],
    mr: MergeRequest,
    changes: Sequence[Change],
    max_workers: int = 8,
) -> list[Job]:
    """Explain each failing job from the tail of its log and the MR diff."""
    rendered_changes = render_changes(changes, 4000, budget=_CHANGES_CHARS)

    def _explain(job: Job) -> Job:
        trace = client.get_job_trace(project_path, job.id)[-_TRACE_TAIL_CHARS:]
        prompt = f"""A CI job failed on the merge request "{mr.title}".

Job: {job.name} (stage: {job.stage})
Failure reason reported by CI: {job.failure_reason or "unknown"}

End of the job log:
```
{trace}
```

Code changes in the merge request:
{rendered_changes}

Is the failure caused by the changes in this merge request, by flaky infrastructure, or by something else?
Point at the specific change if there is one and suggest a fix.

Respond in the following format:
<reason>The root cause and suggested fix, in markdown.</reason>"""
        return replace(job, reason=extract_tag(llm.complete(prompt, FAST, FAILURE_REASON_MAX_TOKENS), "reason"))

    return run_batch(_explain, jobs, lambda job, _: replace(job, reason=ERROR_PLACEHOLDER), max_workers)
