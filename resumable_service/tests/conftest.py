import pytest
from faker import Faker
from resumable_service.resumable import ResumableService, ResumableServiceConfig
from resumable_service.storage import ChunkStorageConfig, FsspecChunkStorage

fake = Faker()


@pytest.fixture
def chunk_storage_config(tmp_path) -> ChunkStorageConfig:
    return ChunkStorageConfig(storage_url=str(tmp_path))


@pytest.fixture
def chunk_storage(chunk_storage_config: ChunkStorageConfig) -> FsspecChunkStorage:
    return FsspecChunkStorage(chunk_storage_config)


@pytest.fixture
def resumable_config() -> ResumableServiceConfig:
    return ResumableServiceConfig(temp_folder="test/tmp", upload_folder="test/uploads")


@pytest.fixture
def resumable_service(
    resumable_config: ResumableServiceConfig, chunk_storage: FsspecChunkStorage
) -> ResumableService:
    return ResumableService(resumable_config, chunk_storage)


@pytest.fixture
def identifier() -> str:
    return f"{fake.random_int(1, 7894)}-identifier"
