"""Unit tests for the CKAN catalog client and a full ingestion run."""

from __future__ import annotations

import json

import pytest

from catalog_ingest.catalog import CkanCatalog, is_supported, supported_resources
from catalog_ingest.errors import FetchError
from catalog_ingest.ingestion.service import run_ingestion
from catalog_ingest.models import DatasetMetadata, ResourceDescriptor, ResourceStatus

BASE = "https://catalog.test/api/3/action"


def _ok(result) -> str:  # noqa: ANN001
    return json.dumps({"success": True, "result": result})


def _package(dataset_id: str, resources: list[dict]) -> str:
    return _ok({"id": dataset_id, "title": f"Title {dataset_id}", "notes": "Notes", "resources": resources})


@pytest.fixture()
def catalog(fake_session) -> CkanCatalog:
    return CkanCatalog(BASE + "/", session=fake_session, timeout=5, max_retries=1)


class TestCkanCatalog:
    def test_lists_dataset_ids(self, catalog, fake_session) -> None:
        fake_session.bodies[f"{BASE}/package_list"] = _ok(["a", "b"])
        assert catalog.list_dataset_ids() == ["a", "b"]

    def test_dataset_metadata_maps_resources(self, catalog, fake_session) -> None:
        fake_session.bodies[f"{BASE}/package_show?id=ds%2F1"] = _package(
            "ds/1",
            [
                {"id": "r1", "url": "https://f.test/a.csv", "format": "CSV", "name": "Budget"},
                {"id": "r2", "url": "https://f.test/b", "mimetype": "application/json"},
            ],
        )

        dataset = catalog.fetch_dataset_metadata("ds/1")

        assert dataset.title == "Title ds/1"
        assert dataset.description == "Notes"
        first, second = dataset.resources
        assert (first.resource_id, first.format, first.display_name) == ("r1", "csv", "Budget")
        assert second.format == "application/json"
        assert second.display_name == "r2"

    def test_success_false_is_a_fetch_error(self, catalog, fake_session) -> None:
        fake_session.bodies[f"{BASE}/package_list"] = json.dumps({"success": False, "error": "boom"})
        with pytest.raises(FetchError, match="boom"):
            catalog.list_dataset_ids()

    def test_invalid_json_is_a_fetch_error(self, catalog, fake_session) -> None:
        fake_session.bodies[f"{BASE}/package_list"] = "<html>maintenance</html>"
        with pytest.raises(FetchError, match="invalid JSON"):
            catalog.list_dataset_ids()


class TestFormatFilter:
    @pytest.mark.parametrize(
        ("fmt", "url", "expected"),
        [
            ("csv", "https://f.test/x", True),
            ("", "https://f.test/x.TSV?dl=1", True),
            ("application/xml", "https://f.test/x", True),
            ("txt", "https://f.test/x", True),
            ("png", "https://f.test/x.png", False),
            ("", "https://f.test/x", False),
            ("pdf", "https://f.test/x.pdf", False),
        ],
    )
    def test_is_supported(self, fmt: str, url: str, expected: bool) -> None:
        resource = ResourceDescriptor(resource_id="r", url=url, format=fmt)
        assert is_supported(resource) is expected

    def test_resources_without_url_are_skipped(self) -> None:
        dataset = DatasetMetadata(
            dataset_id="d",
            title="d",
            resources=(
                ResourceDescriptor(resource_id="r1", url="", format="csv"),
                ResourceDescriptor(resource_id="r2", url="https://f.test/x.csv", format="csv"),
            ),
        )
        assert [r.resource_id for r in supported_resources(dataset)] == ["r2"]


class TestRunIngestion:
    def test_full_run_report(self, make_ctx, catalog, fake_session, graph_sink) -> None:
        fake_session.bodies.update(
            {
                f"{BASE}/package_list": _ok(["good", "broken"]),
                f"{BASE}/package_show?id=good": _package(
                    "good",
                    [
                        {"id": "r1", "url": "https://f.test/a.csv", "format": "CSV"},
                        {"id": "r2", "url": "https://f.test/logo.png", "format": "PNG"},
                        {"id": "r3", "url": "https://f.test/missing.txt", "format": "TXT"},
                    ],
                ),
                "https://f.test/a.csv": "city,pop\nOttawa,1\n",
            }
        )

        report = run_ingestion(make_ctx(), catalog)

        assert [r.resource_id for r in report.results] == ["r1", "r3"]
        assert report.results[0].status is ResourceStatus.DONE
        assert report.results[1].status is ResourceStatus.FAILED
        assert report.skipped_unsupported == 1
        assert "broken" in report.dataset_errors
        assert "https://f.test/logo.png" not in fake_session.requested
        assert len(graph_sink.documents) == 1

        summary = report.summary()
        assert summary["succeeded"] == 1
        assert summary["failed"] == 1
        assert summary["failures"][0]["stage"] == "fetch"

    def test_max_datasets_caps_listing(self, make_ctx, catalog, fake_session) -> None:
        fake_session.bodies[f"{BASE}/package_list"] = _ok([f"d{i}" for i in range(5)])

        report = run_ingestion(make_ctx(), catalog, max_datasets=2)

        assert sorted(report.dataset_errors) == ["d0", "d1"]

    def test_explicit_dataset_ids_skip_listing(self, make_ctx, catalog, fake_session) -> None:
        fake_session.bodies[f"{BASE}/package_show?id=only"] = _package("only", [])

        report = run_ingestion(make_ctx(), catalog, dataset_ids=["only"])

        assert f"{BASE}/package_list" not in fake_session.requested
        assert report.results == []

    def test_listing_failure_propagates(self, make_ctx, catalog) -> None:
        with pytest.raises(FetchError):
            run_ingestion(make_ctx(), catalog)


class TestMalformedPayloads:
    @pytest.mark.parametrize(
        "result",
        [
            ["oops"],
            {"resources": "not-a-list"},
            {"resources": ["not-an-object"]},
            {"resources": [{"id": "r1", "url": {"nested": True}}]},
        ],
    )
    def test_bad_package_show_is_a_fetch_error(self, catalog, fake_session, result) -> None:  # noqa: ANN001
        fake_session.bodies[f"{BASE}/package_show?id=bad"] = _ok(result)
        with pytest.raises(FetchError, match="unexpected package_show payload"):
            catalog.fetch_dataset_metadata("bad")

    def test_bad_package_list_is_a_fetch_error(self, catalog, fake_session) -> None:
        fake_session.bodies[f"{BASE}/package_list"] = _ok({"ids": ["a"]})
        with pytest.raises(FetchError, match="unexpected package_list payload"):
            catalog.list_dataset_ids()

    def test_bad_dataset_is_isolated_from_the_run(self, make_ctx, catalog, fake_session) -> None:
        fake_session.bodies.update(
            {
                f"{BASE}/package_list": _ok(["bad", "good"]),
                f"{BASE}/package_show?id=bad": _ok(["oops"]),
                f"{BASE}/package_show?id=good": _package(
                    "good", [{"id": "r1", "url": "https://f.test/a.txt", "format": "TXT"}]
                ),
                "https://f.test/a.txt": "hello world",
            }
        )

        report = run_ingestion(make_ctx(), catalog)

        assert list(report.dataset_errors) == ["bad"]
        assert [r.status for r in report.results] == [ResourceStatus.DONE]
