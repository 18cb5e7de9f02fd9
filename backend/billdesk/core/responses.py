from urllib.parse import quote

from fastapi.responses import Response

from billdesk.models.attachment import Attachment


def attachment_response(attachment: Attachment, data: bytes) -> Response:
    """File download restoring the original upload name."""
    name = attachment.original_name
    ascii_name = name.encode("ascii", "replace").decode("ascii").replace('"', "_")
    disposition = f'attachment; filename="{ascii_name}"'
    if ascii_name != name:
        disposition += f"; filename*=UTF-8''{quote(name)}"
    return Response(
        content=data,
        media_type=attachment.mime_type,
        headers={"Content-Disposition": disposition},
    )
