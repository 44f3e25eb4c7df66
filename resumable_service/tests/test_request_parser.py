import pytest
from faker import Faker
from resumable_service.exceptions import (
    InvalidChunkNumberException,
    InvalidChunkSizeException,
    InvalidParameterException,
    MissingParameterException,
)
from resumable_service.models.chunk_request import ChunkRequest
from resumable_service.models.parameter_names import ParameterNames
from resumable_service.request_parser import ChunkRequestParser, validate_upload_request

fake = Faker()


def upload_params(**overrides) -> dict:
    params = {
        "resumableChunkNumber": 3,
        "resumableTotalChunks": 600,
        "resumableChunkSize": 200,
        "resumableTotalSize": 120000,
        "resumableIdentifier": f"{fake.random_int(1, 7894)}-identifier",
        "resumableFilename": "example-file.png",
        "resumableRelativePath": "upload",
    }
    params.update(overrides)
    return {key: value for key, value in params.items() if value is not None}


def test_parse_upload() -> None:
    params = upload_params()
    request = ChunkRequestParser().parse_upload(params)

    assert request == ChunkRequest(
        identifier=params["resumableIdentifier"],
        filename="example-file.png",
        chunk_number=3,
        total_chunks=600,
        chunk_size=200,
        total_size=120000,
        relative_path="upload",
    )


def test_parse_numeric_strings() -> None:
    params = upload_params(
        resumableChunkNumber="2", resumableTotalChunks="4", resumableChunkSize=" 100 "
    )
    request = ChunkRequestParser().parse_upload(params)

    assert request.chunk_number == 2
    assert request.total_chunks == 4
    assert request.chunk_size == 100


def test_parse_identifier_from_number() -> None:
    request = ChunkRequestParser().parse_probe(upload_params(resumableIdentifier=100))

    assert request.identifier == "100"


@pytest.mark.parametrize(
    "missing", ["resumableIdentifier", "resumableFilename", "resumableChunkNumber"]
)
def test_parse_probe_missing_parameter(missing: str) -> None:
    params = upload_params()
    del params[missing]

    with pytest.raises(MissingParameterException, match=missing):
        ChunkRequestParser().parse_probe(params)


def test_parse_probe_empty_string_is_missing() -> None:
    with pytest.raises(MissingParameterException):
        ChunkRequestParser().parse_probe(upload_params(resumableFilename="  "))


def test_parse_probe_without_upload_fields() -> None:
    params = upload_params()
    del params["resumableTotalChunks"]
    del params["resumableChunkSize"]

    request = ChunkRequestParser().parse_probe(params)

    assert request.total_chunks is None
    assert request.chunk_size is None


def test_parse_non_numeric_chunk_number() -> None:
    with pytest.raises(InvalidParameterException):
        ChunkRequestParser().parse_probe(upload_params(resumableChunkNumber="three"))


def test_parse_boolean_is_not_numeric() -> None:
    with pytest.raises(InvalidParameterException):
        ChunkRequestParser().parse_probe(upload_params(resumableChunkNumber=True))


@pytest.mark.parametrize("chunk_size", [0, -200, "0"])
def test_parse_upload_invalid_chunk_size(chunk_size) -> None:
    with pytest.raises(InvalidChunkSizeException):
        ChunkRequestParser().parse_upload(upload_params(resumableChunkSize=chunk_size))


def test_parse_upload_missing_chunk_size() -> None:
    params = upload_params()
    del params["resumableChunkSize"]

    with pytest.raises(MissingParameterException):
        ChunkRequestParser().parse_upload(params)


def test_parse_upload_missing_total_chunks() -> None:
    params = upload_params()
    del params["resumableTotalChunks"]

    with pytest.raises(MissingParameterException):
        ChunkRequestParser().parse_upload(params)


@pytest.mark.parametrize(
    "chunk_number,total_chunks", [(0, 3), (-1, 3), (4, 3)]
)
def test_parse_invalid_chunk_number(chunk_number: int, total_chunks: int) -> None:
    with pytest.raises(InvalidChunkNumberException):
        ChunkRequestParser().parse_upload(
            upload_params(
                resumableChunkNumber=chunk_number, resumableTotalChunks=total_chunks
            )
        )


def test_parse_with_remapped_names() -> None:
    names = ParameterNames().with_overrides(
        {"identifier": "uniqueId", "chunkNumber": "part"}
    )
    params = upload_params()
    params["resumableUniqueId"] = params.pop("resumableIdentifier")
    params["resumablePart"] = params.pop("resumableChunkNumber")

    request = ChunkRequestParser(names).parse_upload(params)

    assert request.identifier == params["resumableUniqueId"]
    assert request.chunk_number == 3


def test_parse_without_prefix() -> None:
    params = {
        "identifier": "abc",
        "filename": "a.txt",
        "chunkNumber": "1",
    }

    request = ChunkRequestParser(ParameterNames(prefix="")).parse_probe(params)

    assert request == ChunkRequest(identifier="abc", filename="a.txt", chunk_number=1)


def test_with_overrides_rejects_unknown_name() -> None:
    with pytest.raises(ValueError):
        ParameterNames().with_overrides({"chunkCount": "count"})


def test_wire_name() -> None:
    names = ParameterNames()

    assert names.wire_name("identifier") == "resumableIdentifier"
    assert names.wire_name("totalChunks") == "resumableTotalChunks"


def test_validate_upload_request_chunk_size() -> None:
    request = ChunkRequest(
        identifier="42-id",
        filename="photo.png",
        chunk_number=1,
        total_chunks=3,
        chunk_size=0,
    )

    with pytest.raises(InvalidChunkSizeException):
        validate_upload_request(request)
