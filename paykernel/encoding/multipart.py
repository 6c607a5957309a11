"""multipart/form-data request bodies for file-upload APIs."""

import io
import mimetypes
import os
from typing import Mapping, Optional

from paykernel.common.constants import DEFAULT_CHARSET


def get_entry_boundary(boundary: str) -> bytes:
    return f"\r\n--{boundary}\r\n".encode(DEFAULT_CHARSET)


def get_end_boundary(boundary: str) -> bytes:
    return f"\r\n--{boundary}--\r\n".encode(DEFAULT_CHARSET)


def get_text_entry(field_name: str, field_value: str) -> bytes:
    """Header block and value of one text field."""
    entry = (
        f'Content-Disposition:form-data; name="{field_name}"\r\n'
        "Content-Type:text/plain\r\n\r\n"
        f"{field_value}"
    )
    return entry.encode(DEFAULT_CHARSET)


def get_file_entry(field_name: str, file_path: str) -> bytes:
    """Header block of one file field; the file bytes follow it."""
    file_name = os.path.basename(file_path)
    content_type = mimetypes.guess_type(file_name)[0] or "application/octet-stream"
    entry = (
        f'Content-Disposition:form-data; name="{field_name}"; filename="{file_name}"\r\n'
        f"Content-Type:{content_type}\r\n\r\n"
    )
    return entry.encode(DEFAULT_CHARSET)


def build_multipart_body(
    text_fields: Optional[Mapping[str, str]],
    file_fields: Optional[Mapping[str, str]],
    boundary: str,
) -> io.BytesIO:
    """
    Serialize text and file fields into a multipart/form-data body.

    Args:
        text_fields: Field name -> text value; empty names/values are skipped
        file_fields: Field name -> local file path, read in full
        boundary: Boundary token (also used in the Content-Type header)

    Returns:
        Stream positioned at the start of the body

    Raises:
        OSError: If a file field cannot be opened or read (``filename`` is set)
    """
    stream = io.BytesIO()

    for key, value in (text_fields or {}).items():
        if key and value:
            stream.write(get_entry_boundary(boundary))
            stream.write(get_text_entry(key, str(value)))

    for key, path in (file_fields or {}).items():
        if key and path is not None:
            with open(path, "rb") as f:
                content = f.read()
            stream.write(get_entry_boundary(boundary))
            stream.write(get_file_entry(key, os.fspath(path)))
            stream.write(content)

    stream.write(get_end_boundary(boundary))
    stream.seek(0)
    return stream
