from __future__ import annotations

from ..models.import_result import ImportResult

"""SUMMARY line rendering.

Format::

    SUMMARY project={p} rows={n} inserted={i} updated={u} skipped={s} \
status={clean|degraded|remote_failed} remote={off|inserted=I,updated=U|failed}
"""


def render_summary_line(result: ImportResult) -> str:
    """Render the SUMMARY line for one import.

    Examples:
        >>> from lot_inventory.models import ImportResult, ImportStatus
        >>> r = ImportResult(project="MVLC", status=ImportStatus.CLEAN,
        ...                  inserted=2, updated=1, header_row=0)
        >>> render_summary_line(r)
        'SUMMARY project=MVLC rows=0 inserted=2 updated=1 skipped=0 status=clean remote=off'
    """
    if result.remote_error is not None:
        remote = "failed"
    elif result.remote is None:
        remote = "off"
    else:
        remote = f"inserted={result.remote.inserted},updated={result.remote.updated}"
    return (
        f"SUMMARY project={result.project} "
        f"rows={len(result.records)} "
        f"inserted={result.inserted} "
        f"updated={result.updated} "
        f"skipped={result.skipped_rows} "
        f"status={result.status.value} "
        f"remote={remote}"
    )
