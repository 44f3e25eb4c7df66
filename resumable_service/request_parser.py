from typing import Any, Mapping, Optional

from .exceptions import (
    InvalidChunkNumberException,
    InvalidChunkSizeException,
    InvalidParameterException,
    MissingParameterException,
)
from .models.chunk_request import ChunkRequest
from .models.parameter_names import ParameterNames


class ChunkRequestParser:
    """Decodes a flat parameter mapping into a `ChunkRequest`.

    Probe calls only need the chunk slot triple. Upload calls additionally need
    a positive chunk size and the total chunk count, which drives completeness.
    """

    def __init__(self, names: Optional[ParameterNames] = None) -> None:
        self.names: ParameterNames = names or ParameterNames()

    def parse_probe(self, params: Mapping[str, Any]) -> ChunkRequest:
        return self._parse(params)

    def parse_upload(self, params: Mapping[str, Any]) -> ChunkRequest:
        request = self._parse(params)
        validate_upload_request(request)
        return request

    def context(self, params: Mapping[str, Any]) -> dict[str, Any]:
        """Whatever request fields can be read, for reporting a rejected request."""
        context: dict[str, Any] = {}
        for key, short_name in (("identifier", "identifier"), ("file_name", "filename")):
            value = self._value(params, short_name)
            if value is not None:
                context[key] = str(value)
        for key, short_name in (
            ("chunk_number", "chunkNumber"),
            ("total_chunks", "totalChunks"),
        ):
            try:
                context[key] = self._int(params, short_name)
            except InvalidParameterException:
                context[key] = None
        return context

    def _parse(self, params: Mapping[str, Any]) -> ChunkRequest:
        identifier = self._required_str(params, "identifier")
        filename = self._required_str(params, "filename")
        chunk_number = self._int(params, "chunkNumber", required=True)
        total_chunks = self._int(params, "totalChunks")

        if chunk_number < 1:
            raise InvalidChunkNumberException(f"Invalid chunk number {chunk_number}")
        if total_chunks is not None and chunk_number > total_chunks:
            raise InvalidChunkNumberException(
                f"Chunk number {chunk_number} exceeds total chunks {total_chunks}"
            )

        relative_path = self._value(params, "relativePath")
        return ChunkRequest(
            identifier=identifier,
            filename=filename,
            chunk_number=chunk_number,
            total_chunks=total_chunks,
            chunk_size=self._int(params, "chunkSize"),
            total_size=self._int(params, "totalSize"),
            relative_path=None if relative_path is None else str(relative_path),
        )

    def _value(self, params: Mapping[str, Any], short_name: str) -> Any:
        value = params.get(self.names.wire_name(short_name))
        if value is None or (isinstance(value, str) and value.strip() == ""):
            return None
        return value

    def _required_str(self, params: Mapping[str, Any], short_name: str) -> str:
        value = self._value(params, short_name)
        if value is None:
            raise MissingParameterException(
                f"Missing parameter {self.names.wire_name(short_name)}"
            )
        return str(value)

    def _int(
        self, params: Mapping[str, Any], short_name: str, required: bool = False
    ) -> Optional[int]:
        wire_name = self.names.wire_name(short_name)
        value = self._value(params, short_name)
        if value is None:
            if required:
                raise MissingParameterException(f"Missing parameter {wire_name}")
            return None
        if isinstance(value, bool):
            raise InvalidParameterException(f"Parameter {wire_name} is not numeric")
        if isinstance(value, int):
            return value
        try:
            return int(str(value).strip())
        except ValueError as exception:
            raise InvalidParameterException(
                f"Parameter {wire_name} is not numeric"
            ) from exception


def validate_upload_request(request: ChunkRequest) -> None:
    if request.chunk_size is None:
        raise MissingParameterException("Missing chunk size")
    if request.chunk_size <= 0:
        raise InvalidChunkSizeException(f"Invalid chunk size {request.chunk_size}")
    if request.total_chunks is None:
        raise MissingParameterException("Missing total chunks")
    if request.total_chunks < 1:
        raise InvalidChunkNumberException(
            f"Invalid total chunks {request.total_chunks}"
        )
    if request.chunk_number < 1 or request.chunk_number > request.total_chunks:
        raise InvalidChunkNumberException(
            f"Invalid chunk number {request.chunk_number}"
        )
