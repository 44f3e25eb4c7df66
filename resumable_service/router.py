import logging
from functools import lru_cache
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, Request, Response, UploadFile
from fastapi.concurrency import run_in_threadpool

from .models.parameter_names import ParameterNames
from .models.upload_status import UploadStatus
from .resumable import ResumableService, ResumableServiceConfig
from .settings import ResumableSettings, get_settings
from .storage import ChunkStorageConfig, FsspecChunkStorage

STATUS_CODES: dict[UploadStatus, int] = {
    UploadStatus.HAVE_CHUNK: 200,
    UploadStatus.NEED_CHUNK: 204,
    UploadStatus.ACCEPTED: 201,
    UploadStatus.COMPLETED: 201,
    UploadStatus.REJECTED: 422,
    UploadStatus.STORAGE_FAILURE: 500,
}


@lru_cache()  # one storage client per storage url
def get_chunk_storage(storage_url: str) -> FsspecChunkStorage:
    return FsspecChunkStorage(ChunkStorageConfig(storage_url=storage_url))


def get_resumable_service(
    settings: Annotated[ResumableSettings, Depends(get_settings)],
) -> ResumableService:
    storage = get_chunk_storage(settings.STORAGE_URL)
    config = ResumableServiceConfig(
        temp_folder=settings.TEMP_FOLDER,
        upload_folder=settings.UPLOAD_FOLDER,
        parameter_names=ParameterNames(prefix=settings.PARAM_PREFIX),
        debug=settings.DEBUG,
    )
    return ResumableService(config, storage, logger=logging.getLogger("resumable_service"))


ResumableServiceDep = Annotated[ResumableService, Depends(get_resumable_service)]

router = APIRouter(
    prefix="/upload",
    tags=["upload"],
)


@router.get("")
async def probe_chunk(request: Request, service: ResumableServiceDep) -> Response:
    result = await run_in_threadpool(service.process, dict(request.query_params))
    return Response(status_code=STATUS_CODES[result.status])


@router.post("")
async def upload_chunk(request: Request, service: ResumableServiceDep) -> Response:
    form = await request.form()
    params: dict[str, Any] = dict(request.query_params)
    upload: Optional[UploadFile] = None
    for key, value in form.multi_items():
        if isinstance(value, str):
            params[key] = value
        elif upload is None:
            upload = value
    payload = upload.file if upload is not None else None
    result = await run_in_threadpool(service.process, params, payload)
    return Response(status_code=STATUS_CODES[result.status])
