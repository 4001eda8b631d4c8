"""Tests for opening file and HTTP sources."""

import io

import pytest
import requests

from ingestion import CsvImporter, ImportConfigurationError
from ingestion.sources import open_file, open_url


class FakeRaw(io.BytesIO):
    decode_content = False


class FakeResponse:
    def __init__(self, body: bytes, status: int = 200):
        self.raw = FakeRaw(body)
        self.status_code = status
        self.closed = False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def close(self):
        self.closed = True


@pytest.fixture
def no_sleep(monkeypatch):
    monkeypatch.setattr("ingestion.sources.time.sleep", lambda seconds: None)


class TestOpenFile:
    def test_reads_text(self, write_csv):
        with open_file(write_csv([["a", "b"]])) as stream:
            assert stream.read() == "a,b\r\n"

    def test_missing(self, tmp_path):
        with pytest.raises(ImportConfigurationError):
            with open_file(tmp_path / "missing.csv"):
                pass


class TestOpenUrl:
    def test_streams_body(self, monkeypatch):
        response = FakeResponse("id,name\n1,Zoë\n".encode("utf-8"))
        monkeypatch.setattr(requests, "get", lambda url, **kwargs: response)

        with open_url("https://example.com/people.csv") as stream:
            assert stream.read() == "id,name\n1,Zoë\n"
        assert response.raw.decode_content is True
        assert response.closed

    def test_retries_then_succeeds(self, monkeypatch, no_sleep):
        calls = []

        def fake_get(url, **kwargs):
            calls.append(url)
            if len(calls) == 1:
                raise requests.ConnectionError("connection refused")
            if len(calls) == 2:
                return FakeResponse(b"", status=503)
            return FakeResponse(b"1,2\n")

        monkeypatch.setattr(requests, "get", fake_get)

        with open_url("https://example.com/x.csv", max_retries=3) as stream:
            assert stream.read() == "1,2\n"
        assert len(calls) == 3

    def test_gives_up_after_max_retries(self, monkeypatch, no_sleep):
        def fake_get(url, **kwargs):
            raise requests.ConnectionError("connection refused")

        monkeypatch.setattr(requests, "get", fake_get)

        with pytest.raises(ImportConfigurationError, match="Cannot fetch"):
            with open_url("https://example.com/x.csv", max_retries=2):
                pass

    def test_import_url(self, monkeypatch, db_service, people, people_mapper, people_rows):
        body = b"id,age,name\n1,30,Ann\n2,oops,Bob\n"
        monkeypatch.setattr(requests, "get", lambda url, **kwargs: FakeResponse(body))

        result = CsvImporter(db_service).import_url(
            "https://example.com/people.csv", people, mapper=people_mapper, has_header=True
        )

        assert result.source == "https://example.com/people.csv"
        assert result.rows_read == 2
        assert result.rows_imported == 1
        assert people_rows() == [{"id": 1, "age": 30, "name": "Ann"}]

    def test_import_url_with_source_name(self, monkeypatch, db_service, people):
        monkeypatch.setattr(
            requests, "get", lambda url, **kwargs: FakeResponse(b"1,30,Ann\n")
        )

        result = CsvImporter(db_service).import_url(
            "https://example.com/export?id=7", people, source_name="people export"
        )

        assert result.source == "people export"
        assert result.rows_imported == 1
