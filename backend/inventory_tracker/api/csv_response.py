"""Attachment response for exported CSV documents."""

from fastapi.responses import Response

from inventory_tracker.services.csv_io import CsvExport


def csv_attachment(export: CsvExport) -> Response:
    return Response(
        content=export.content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )
