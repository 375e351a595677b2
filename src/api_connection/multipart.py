"""
multipart/form-data bodies for api_connection.

Sections are written one after another, each framed by the boundary
delimiter, either into memory or straight into a file on disk so large
uploads never have to be held in memory.
"""

import asyncio
import io
import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, BinaryIO, List, Optional, Sequence, Union

from .contracts import RequestBuilder
from .exceptions import ResourceError
from .fields import iter_form_fields
from .headers import ContentDisposition, ContentType
from .http_primitives import Request, add_header_value
from .streams import DEFAULT_CHUNK_SIZE, copy_stream

logger = logging.getLogger(__name__)

CRLF = b"\r\n"

PathLike = Union[str, "os.PathLike[str]"]


def generate_boundary() -> str:
    """Generate a boundary embedding the current time and a random token."""
    timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
    return f"xxx{timestamp}{uuid.uuid4().hex[:16]}xxx"


@dataclass
class MultipartSection:
    """
    One section of a multipart/form-data body.

    ``data`` may be bytes-like, a readable binary stream, a file path
    (``os.PathLike``) or any other value, which is written as ``str(data)``.
    """

    content_disposition: ContentDisposition
    content_type: ContentType
    data: Any
    charset: str = "UTF-8"

    @classmethod
    def from_file(
        cls,
        name: str,
        path: PathLike,
        content_type: Optional[ContentType] = None,
        charset: str = "UTF-8",
    ) -> "MultipartSection":
        """Make a section that uploads a file under its own name."""
        path = Path(path)
        return cls(
            content_disposition=ContentDisposition.form_data(
                name=name, filename=path.name, charset=charset
            ),
            content_type=content_type or ContentType.application_octet_stream(),
            data=path,
            charset=charset,
        )

    @classmethod
    def make(
        cls,
        name: str,
        data: Any,
        filename: Optional[str] = None,
        charset: str = "UTF-8",
    ) -> "MultipartSection":
        """
        Make a section for a field value, inferring its headers.

        Files default to their own name as filename. Text values are
        ``text/plain``; files, bytes and streams get a type inferred from
        the filename, falling back to ``application/octet-stream``.
        """
        if not filename and isinstance(data, os.PathLike):
            filename = Path(data).name

        content_type: Optional[ContentType] = None
        if isinstance(data, os.PathLike):
            content_type = ContentType.for_filename(os.fspath(data))
        elif not isinstance(data, (bytes, bytearray, memoryview)) and not hasattr(data, "read"):
            content_type = ContentType.text_plain(charset)

        if content_type is None and filename:
            content_type = ContentType.for_filename(filename)
        if content_type is None:
            content_type = ContentType.application_octet_stream()

        return cls(
            content_disposition=ContentDisposition.form_data(
                name=name, filename=filename, charset=charset
            ),
            content_type=content_type,
            data=data,
            charset=charset,
        )

    def write(self, stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
        """
        Write the section headers and payload into ``stream``.

        Args:
            stream: Writable binary stream
            chunk_size: Chunk size for stream and file payloads

        Returns:
            A transcript of what was written, for diagnostics

        Raises:
            ResourceError: If a file payload cannot be read
        """
        log = []

        line = self.content_disposition.full_line
        log.append(line)
        stream.write(line.encode(self.charset) + CRLF)

        line = self.content_type.full_line
        log.append(line)
        stream.write(line.encode(self.charset) + CRLF)

        log.append("")
        stream.write(CRLF)

        data = self.data
        if isinstance(data, (bytes, bytearray, memoryview)):
            log.append(f"Bytes: {len(data)}")
            stream.write(data)
        elif hasattr(data, "read"):
            length = copy_stream(data, stream, chunk_size)
            log.append(f"Stream: {length}")
        elif isinstance(data, os.PathLike):
            path = os.fspath(data)
            try:
                source = open(path, "rb")
            except OSError as e:
                raise ResourceError("Cannot open section file", path=path, cause=e) from e
            with source:
                length = copy_stream(source, stream, chunk_size)
            log.append(f"File: {os.path.abspath(path)} ({length})")
        else:
            value = "" if data is None else str(data)
            log.append(value)
            stream.write(value.encode(self.charset))

        return "\n".join(log)


@dataclass
class MultipartBody:
    """Result of building a multipart body."""

    boundary: str
    length: int
    transcript: str
    body: Optional[bytes] = None
    body_file: Optional[Path] = None

    @property
    def content_type(self) -> ContentType:
        return ContentType.multipart_form_data(self.boundary)


def _open_output(output: Path) -> BinaryIO:
    """
    Open the output file.

    For a directory, the first free numeric name (``0``, ``1``, ...)
    is created exclusively so an existing file is never overwritten.
    """
    if not output.is_dir():
        return open(output, "wb")

    index = 0
    while True:
        candidate = output / str(index)
        try:
            return open(candidate, "xb")
        except FileExistsError:
            index += 1


def build_multipart(
    sections: Sequence[MultipartSection],
    boundary: Optional[str] = None,
    output: Optional[PathLike] = None,
    charset: str = "UTF-8",
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> MultipartBody:
    """
    Assemble a multipart/form-data body.

    Args:
        sections: Sections in body order
        boundary: Boundary token (generated when empty)
        output: Directory or file to stream the body into; the body is
            kept in memory when None
        charset: Charset of delimiter lines
        chunk_size: Chunk size for stream and file payloads

    Returns:
        The body buffer or file, its length and a transcript

    Raises:
        ResourceError: If reading a payload or writing the output fails.
            A partially written output file is removed.
    """
    boundary = boundary or generate_boundary()
    delimiter = f"--{boundary}"
    delimiter_bytes = delimiter.encode(charset)
    log = []

    output_path: Optional[Path] = None
    if output is not None:
        try:
            stream: BinaryIO = _open_output(Path(output))
        except OSError as e:
            raise ResourceError("Cannot create multipart output", path=str(output), cause=e) from e
        output_path = Path(stream.name)
    else:
        stream = io.BytesIO()

    try:
        for section in sections:
            stream.write(delimiter_bytes + CRLF)
            log.append(delimiter)
            log.append(section.write(stream, chunk_size))
            stream.write(CRLF)
        stream.write(delimiter_bytes + b"--")
        log.append(f"{delimiter}--")
        stream.flush()
    except BaseException as e:
        stream.close()
        if output_path is not None:
            _remove_quietly(output_path)
        if isinstance(e, ResourceError) or not isinstance(e, Exception):
            raise
        path = str(output_path) if output_path is not None else None
        raise ResourceError(f"Cannot write multipart body: {e}", path=path, cause=e) from e

    transcript = "\n".join(log)
    if output_path is None:
        body = stream.getvalue()  # type: ignore[attr-defined]
        stream.close()
        return MultipartBody(
            boundary=boundary, length=len(body), transcript=transcript, body=body
        )

    stream.close()
    return MultipartBody(
        boundary=boundary,
        length=os.path.getsize(output_path),
        transcript=transcript,
        body_file=output_path,
    )


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Error removing multipart output {path}: {e}")


class MultipartFormDataRequestBuilder(RequestBuilder):
    """
    Fill a request with a multipart/form-data body.

    ``params`` may be a mapping of field name to value, a list of
    MultipartSection objects, a FormFields object or None. Values can be
    bytes, binary streams, file paths, MultipartSection objects or
    anything with a string form.
    """

    DEFAULT_CHARSET = "UTF-8"

    def __init__(
        self,
        params: Any,
        output: Optional[PathLike] = None,
        auto_delete_output: bool = True,
        boundary: Optional[str] = None,
        charset: Optional[str] = None,
        enable_log: bool = True,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        """
        Args:
            params: Field source (see class docstring)
            output: Directory or file to write the body into; recommended
                for large payloads. None keeps the body in memory.
            auto_delete_output: Delete the written file in ``clean()``
            boundary: Boundary token; generated when None or empty
            charset: Charset of headers and text values
            enable_log: Put the body transcript in the request description
            chunk_size: Chunk size for stream and file payloads
        """
        self.params = params
        self.output = Path(output) if output is not None else None
        self.auto_delete_output = auto_delete_output
        self.boundary = boundary
        self.charset = charset or self.DEFAULT_CHARSET
        self.enable_log = enable_log
        self.chunk_size = chunk_size
        self._resolved_output: Optional[Path] = None

    def build_sections(self) -> List[MultipartSection]:
        """Turn ``params`` into the ordered list of sections."""
        if self.params is None:
            return []

        if isinstance(self.params, (list, tuple)) and all(
            isinstance(item, MultipartSection) for item in self.params
        ):
            return list(self.params)

        sections = []
        for name, value, filename in iter_form_fields(self.params):
            if isinstance(value, MultipartSection):
                sections.append(value)
            else:
                sections.append(
                    MultipartSection.make(name, value, filename=filename, charset=self.charset)
                )
        return sections

    async def fill_request(self, request: Request) -> Request:
        if request.body is not None or request.body_file is not None:
            logger.debug("Request already has a body; multipart builder left it unchanged")
            return request.replace(method=request.method or "POST")

        sections = self.build_sections()
        build = asyncio.ensure_future(asyncio.to_thread(
            build_multipart,
            sections,
            self.boundary,
            self.output,
            self.charset,
            self.chunk_size,
        ))
        try:
            # The worker thread cannot be interrupted; the build keeps
            # running after a cancellation and is discarded when it ends
            result = await asyncio.shield(build)
        except asyncio.CancelledError:
            build.add_done_callback(self._discard_abandoned)
            raise
        self._resolved_output = result.body_file

        logger.debug(
            f"Built multipart body: {len(sections)} sections, {result.length} bytes"
            + (f" in {result.body_file}" if result.body_file else "")
        )

        headers = {name: list(values) for name, values in request.headers.items()}
        if not request.has_header("Content-Type"):
            add_header_value(headers, "Content-Type", result.content_type.body)
        if not request.has_header("Content-Length"):
            add_header_value(headers, "Content-Length", str(result.length))

        description = request.description
        if description is None and self.enable_log:
            description = result.transcript

        return request.replace(
            method=request.method or "POST",
            headers=headers,
            body=result.body,
            body_file=result.body_file,
            description=description,
        )

    def clean(self) -> None:
        output, self._resolved_output = self._resolved_output, None
        if output is not None and self.auto_delete_output:
            _remove_quietly(output)
            logger.debug(f"Removed multipart output {output}")

    def _discard_abandoned(self, build: "asyncio.Future[MultipartBody]") -> None:
        if build.cancelled() or build.exception() is not None:
            return
        output = build.result().body_file
        if output is None:
            return
        if self.auto_delete_output:
            _remove_quietly(output)
            logger.debug(f"Removed multipart output {output} of a cancelled build")
        else:
            logger.debug(f"Cancelled build left multipart output {output}")

    @property
    def resolved_output(self) -> Optional[Path]:
        """The file the last body was written to, until ``clean()``."""
        return self._resolved_output
