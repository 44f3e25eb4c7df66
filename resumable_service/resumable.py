import logging
import shutil
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Mapping, Optional, Union

from .exceptions import (
    ChunkRequestException,
    InvalidChunkNumberException,
    InvalidChunkSizeException,
    InvalidParameterException,
    MissingParameterException,
    ObjectAlreadyExistsException,
    StorageFailureException,
)
from .models.assembly_result_dto import AssemblyResultDto, AssemblyStatus
from .models.chunk_request import ChunkRequest
from .models.parameter_names import ParameterNames
from .models.upload_error import UploadError
from .models.upload_response_dto import UploadResponseDto
from .models.upload_status import UploadStatus
from .request_parser import ChunkRequestParser, validate_upload_request
from .storage import COPY_BUFFER_SIZE, ChunkStorage
from .utils import (
    chunk_filename,
    chunk_number_from_key,
    create_safe_filename,
    find_extension,
    natural_sort_key,
    remove_extension,
    sanitize_filename,
)

Payload = Union[bytes, BinaryIO]

# most specific first, InvalidParameterException extends MissingParameterException
REQUEST_ERRORS: list[tuple[type[ChunkRequestException], UploadError]] = [
    (InvalidParameterException, UploadError.INVALID_PARAMETER),
    (MissingParameterException, UploadError.MISSING_PARAMETER),
    (InvalidChunkSizeException, UploadError.INVALID_CHUNK_SIZE),
    (InvalidChunkNumberException, UploadError.INVALID_CHUNK_NUMBER),
]


@dataclass
class ResumableServiceConfig:
    temp_folder: str = "tmp"
    upload_folder: str = "uploads"
    parameter_names: ParameterNames = field(default_factory=ParameterNames)
    final_filename: Optional[str] = None
    delete_tmp_folder: bool = True
    debug: bool = False


class ResumableService:
    """Server side of the resumable.js chunked upload protocol.

    All upload state lives in the storage: a chunk is present when its slot key
    exists, and an upload is complete when every slot from 1 to the total chunk
    count exists. Once complete, the chunks are concatenated in chunk-number order
    into ``upload_folder/<final name>`` and the session folder is removed.

    The attributes ``is_upload_complete``, ``filepath``, ``extension`` and
    ``original_filename`` describe the last call made on this instance.
    """

    def __init__(
        self,
        config: ResumableServiceConfig,
        storage: ChunkStorage,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config
        self.storage = storage
        self.logger = logger
        self.parser = ChunkRequestParser(config.parameter_names)
        self._reset()

    def _reset(self) -> None:
        self.is_upload_complete: bool = False
        self.filepath: Optional[str] = None
        self.extension: Optional[str] = None
        self.original_filename: Optional[str] = None

    def process(
        self,
        params: Mapping[str, Any],
        payload: Optional[Payload] = None,
        final_filename: Optional[str] = None,
    ) -> UploadResponseDto:
        """Handle one protocol request: a chunk upload when a payload is attached,
        otherwise a probe."""
        if payload is not None:
            self._log("Handling upload chunk")
            return self.handle_chunk(params, payload, final_filename=final_filename)
        self._log("Handling test chunk")
        return self.handle_test_chunk(params)

    def handle_test_chunk(self, params: Mapping[str, Any]) -> UploadResponseDto:
        self._reset()
        try:
            request = self.parser.parse_probe(params)
        except ChunkRequestException as exception:
            self._log("Rejected test chunk", reason=str(exception))
            return self._rejected(params, exception)
        return self.probe(request)

    def handle_chunk(
        self,
        params: Mapping[str, Any],
        payload: Payload,
        final_filename: Optional[str] = None,
    ) -> UploadResponseDto:
        self._reset()
        try:
            request = self.parser.parse_upload(params)
        except ChunkRequestException as exception:
            self._log("Rejected chunk", reason=str(exception))
            _release(payload)
            return self._rejected(params, exception)
        return self.receive_chunk(request, payload, final_filename=final_filename)

    def probe(self, request: ChunkRequest) -> UploadResponseDto:
        try:
            uploaded = self.is_chunk_uploaded(
                request.identifier, request.filename, request.chunk_number
            )
        except StorageFailureException as exception:
            return self._response(
                request,
                UploadStatus.STORAGE_FAILURE,
                message=str(exception),
                error=UploadError.STORAGE_FAILURE,
            )
        # HAVE_CHUNK tells the client to skip sending it
        status = UploadStatus.HAVE_CHUNK if uploaded else UploadStatus.NEED_CHUNK
        return self._response(request, status)

    def receive_chunk(
        self,
        request: ChunkRequest,
        payload: Payload,
        final_filename: Optional[str] = None,
    ) -> UploadResponseDto:
        self._reset()
        try:
            validate_upload_request(request)
        except ChunkRequestException as exception:
            _release(payload)
            return self._response(
                request,
                UploadStatus.REJECTED,
                message=str(exception),
                error=error_for(exception),
            )

        self.original_filename = request.filename
        self.extension = find_extension(request.filename)
        chunk_key = self.tmp_chunk_key(
            request.identifier, request.filename, request.chunk_number
        )

        try:
            if self.storage.has(chunk_key):
                self._log("Chunk already uploaded", key=chunk_key)
            else:
                self._log(
                    "Moving chunk",
                    chunk_number=request.chunk_number,
                    identifier=request.identifier,
                )
                self.storage.write(chunk_key, payload)
            complete = self.is_file_upload_complete(
                request.filename, request.identifier, request.total_chunks
            )
        except StorageFailureException as exception:
            return self._response(
                request,
                UploadStatus.STORAGE_FAILURE,
                message=str(exception),
                error=UploadError.STORAGE_FAILURE,
            )
        finally:
            _release(payload)

        if not complete:
            self._log("Chunk accepted", key=chunk_key)
            return self._response(request, UploadStatus.ACCEPTED)

        self.is_upload_complete = True
        result = self.assemble(
            request.identifier, request.filename, final_filename=final_filename
        )
        if result.status == AssemblyStatus.STORAGE_FAILURE:
            return self._response(
                request,
                UploadStatus.STORAGE_FAILURE,
                message=result.message,
                error=UploadError.STORAGE_FAILURE,
            )
        self._log("Upload is complete", identifier=request.identifier)
        return self._response(
            request,
            UploadStatus.COMPLETED,
            message=result.message,
            file_path=result.key,
        )

    def is_chunk_uploaded(
        self, identifier: str, filename: str, chunk_number: int
    ) -> bool:
        return self.storage.has(self.tmp_chunk_key(identifier, filename, chunk_number))

    def is_file_upload_complete(
        self, filename: str, identifier: str, total_chunks: int
    ) -> bool:
        if total_chunks < 1:
            return False
        for chunk_number in range(1, total_chunks + 1):
            if not self.is_chunk_uploaded(identifier, filename, chunk_number):
                return False
        return True

    def tmp_chunk_dir(self, identifier: str) -> str:
        return f"{self.config.temp_folder}/{sanitize_filename(identifier)}"

    def tmp_chunk_filename(self, filename: str, chunk_number: int) -> str:
        return chunk_filename(sanitize_filename(filename), chunk_number)

    def tmp_chunk_key(self, identifier: str, filename: str, chunk_number: int) -> str:
        return (
            f"{self.tmp_chunk_dir(identifier)}/"
            f"{self.tmp_chunk_filename(filename, chunk_number)}"
        )

    def final_filename(self, filename: str, final_filename: Optional[str] = None) -> str:
        pinned = final_filename or self.config.final_filename
        if pinned:
            return create_safe_filename(pinned, filename)
        return sanitize_filename(filename)

    def get_original_filename(self, without_extension: bool = False) -> Optional[str]:
        if self.original_filename is None or not without_extension:
            return self.original_filename
        return remove_extension(self.original_filename)

    def assemble(
        self, identifier: str, filename: str, final_filename: Optional[str] = None
    ) -> AssemblyResultDto:
        target_key = (
            f"{self.config.upload_folder}/{self.final_filename(filename, final_filename)}"
        )
        self.filepath = target_key
        self.extension = find_extension(target_key)

        try:
            if self.storage.has(target_key):
                self._log("Final file already exists", key=target_key)
                return AssemblyResultDto(
                    status=AssemblyStatus.ALREADY_EXISTS,
                    key=target_key,
                    message="Upload already assembled",
                )
            chunk_keys = self._chunk_keys(identifier, filename)
            self.create_file_from_chunks(chunk_keys, target_key)
        except ObjectAlreadyExistsException:
            self._log("Final file created concurrently", key=target_key)
            return AssemblyResultDto(
                status=AssemblyStatus.ALREADY_EXISTS,
                key=target_key,
                message="Upload already assembled",
            )
        except StorageFailureException as exception:
            return AssemblyResultDto(
                status=AssemblyStatus.STORAGE_FAILURE,
                key=target_key,
                message=str(exception),
            )

        if self.config.delete_tmp_folder:
            self._delete_chunks(identifier, chunk_keys)
        return AssemblyResultDto(status=AssemblyStatus.CREATED, key=target_key)

    def create_file_from_chunks(self, chunk_keys: list[str], target_key: str) -> None:
        """Concatenate ``chunk_keys`` in natural order into a new ``target_key``.

        Raises `ObjectAlreadyExistsException` when the target appears before it
        could be created and `StorageFailureException` when it could not be
        written, in which case no partial target is left behind.
        """
        self._log("Beginning of create file from chunks", key=target_key)
        if not chunk_keys:
            raise StorageFailureException(f"No chunks to assemble into {target_key}")
        ordered = sorted(chunk_keys, key=natural_sort_key)
        try:
            with self.storage.create_exclusive(target_key) as target:
                for chunk_key in ordered:
                    with self.storage.read_stream(chunk_key) as source:
                        shutil.copyfileobj(source, target, COPY_BUFFER_SIZE)
                    self._log("Append chunk file", key=chunk_key)
        except ObjectAlreadyExistsException:
            raise
        except StorageFailureException:
            self._discard(target_key)
            raise
        except OSError as exception:
            self._discard(target_key)
            raise StorageFailureException(f"Cannot assemble {target_key}") from exception

        if not self.storage.has(target_key):
            raise StorageFailureException(f"{target_key} missing after assembly")
        self._log("End of create file from chunks", key=target_key)

    def _chunk_keys(self, identifier: str, filename: str) -> list[str]:
        safe_filename = sanitize_filename(filename)
        return [
            key
            for key in self.storage.list_keys(self.tmp_chunk_dir(identifier))
            if chunk_number_from_key(key, safe_filename) is not None
        ]

    def _delete_chunks(self, identifier: str, chunk_keys: list[str]) -> None:
        for chunk_key in chunk_keys:
            try:
                self.storage.delete(chunk_key)
            except StorageFailureException:
                self._warn("Failed to delete chunk", key=chunk_key)

        chunk_dir = self.tmp_chunk_dir(identifier)
        try:
            remaining = self.storage.list_keys(chunk_dir)
            if remaining:
                # other files are still uploading under this identifier
                self._log("Keeping chunk dir", key=chunk_dir, remaining=len(remaining))
                return
            self._log("Removing chunk dir", key=chunk_dir)
            self.storage.delete(chunk_dir)
        except StorageFailureException:
            self._warn("Failed to remove chunk dir", key=chunk_dir)

    def _discard(self, key: str) -> None:
        try:
            self.storage.delete(key)
        except StorageFailureException:
            self._warn("Failed to remove partial file", key=key)

    def _rejected(
        self, params: Mapping[str, Any], exception: ChunkRequestException
    ) -> UploadResponseDto:
        return UploadResponseDto(
            status=UploadStatus.REJECTED,
            message=str(exception),
            error=error_for(exception),
            **self.parser.context(params),
        )

    def _response(
        self,
        request: ChunkRequest,
        status: UploadStatus,
        message: Optional[str] = None,
        file_path: Optional[str] = None,
        error: Optional[UploadError] = None,
    ) -> UploadResponseDto:
        return UploadResponseDto(
            status=status,
            message=message,
            error=error,
            identifier=request.identifier,
            file_name=request.filename,
            chunk_number=request.chunk_number,
            total_chunks=request.total_chunks,
            file_path=file_path,
        )

    def _log(self, msg: str, **extra: Any) -> None:
        if self.config.debug and self.logger is not None:
            self.logger.debug(msg, extra=extra)

    def _warn(self, msg: str, **extra: Any) -> None:
        if self.logger is not None:
            self.logger.warning(msg, extra=extra)


def error_for(exception: ChunkRequestException) -> UploadError:
    for exception_type, error in REQUEST_ERRORS:
        if isinstance(exception, exception_type):
            return error
    return UploadError.INVALID_PARAMETER


def _release(payload: Payload) -> None:
    close = getattr(payload, "close", None)
    if close is not None:
        close()
