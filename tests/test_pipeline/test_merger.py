from __future__ import annotations

import json

import pytest

from pwtelemetry.pipeline.merger import (
    AggregationError,
    AggregationMerger,
    merge_interaction_logs,
    merge_request_maps,
    merge_screenshot_maps,
)
from pwtelemetry.pipeline.worker_files import DataKind, merged_file_path, worker_file_name


def _stats(success: int, fail: int, failures=()):
    return {"success": success, "fail": fail, "failures": list(failures)}


def _interaction(name: str, x: float = 1.0):
    return {
        "interactionType": "click",
        "logicalObjectName": name,
        "timestamp": 1_700_000_000_000,
        "boundingBox": {"x": x, "y": 2.0, "width": 3.0, "height": 4.0},
    }


def test_request_maps_sum_counts_and_concatenate_failures():
    worker_one = {"https://a.example.com/u": _stats(3, 1, [{"testName": "t1", "responseCode": 500}])}
    worker_two = {
        "https://a.example.com/u": _stats(2, 0),
        "https://b.example.com/v": _stats(0, 2, [{"testName": "t2", "responseCode": 404}] * 2),
    }

    merged = merge_request_maps([worker_one, worker_two])

    assert merged["https://a.example.com/u"] == _stats(5, 1, [{"testName": "t1", "responseCode": 500}])
    assert merged["https://b.example.com/v"]["fail"] == 2
    # Inputs are not mutated.
    assert worker_one["https://a.example.com/u"]["success"] == 3


def test_interactions_concatenate_and_screenshots_keep_first_seen():
    assert merge_interaction_logs([[_interaction("A")], [], [_interaction("B")]]) == [_interaction("A"), _interaction("B")]

    first = {"HomePage": {"screenshotPath": "HomePage/screenshot-worker-0.png", "boundingBoxOrigin": {"x": 0, "y": 0}}}
    second = {
        "HomePage": {"screenshotPath": "HomePage/screenshot-worker-1.png", "boundingBoxOrigin": {"x": 9, "y": 9}},
        "TopNav": {"screenshotPath": "TopNav/screenshot-worker-1.png", "boundingBoxOrigin": {"x": 5, "y": 6}},
    }
    merged = merge_screenshot_maps([first, second])
    assert merged["HomePage"] == first["HomePage"]
    assert set(merged) == {"HomePage", "TopNav"}


def test_aggregate_merges_and_deletes_worker_files(telemetry_settings, store):
    directory = telemetry_settings.network_report_path
    store.write_json(directory / worker_file_name(0, DataKind.NETWORK), {"https://a.example.com/u": _stats(3, 1, [{"testName": "t1", "responseCode": 500}])})
    store.write_json(directory / worker_file_name(1, DataKind.NETWORK), {"https://a.example.com/u": _stats(2, 0)})

    target = AggregationMerger(telemetry_settings, store).aggregate(DataKind.NETWORK)

    assert target == merged_file_path(telemetry_settings, DataKind.NETWORK)
    assert json.loads(target.read_text()) == {
        "https://a.example.com/u": _stats(5, 1, [{"testName": "t1", "responseCode": 500}])
    }
    assert sorted(p.name for p in directory.iterdir()) == ["network-traffic-merged.json"]


def test_second_run_is_a_noop(telemetry_settings, store):
    directory = telemetry_settings.heatmap_report_path
    store.write_json(directory / worker_file_name(0, DataKind.INTERACTIONS), [_interaction("A")])
    merger = AggregationMerger(telemetry_settings, store)

    target = merger.aggregate(DataKind.INTERACTIONS)
    before = target.read_text()

    assert merger.aggregate(DataKind.INTERACTIONS) is None
    assert target.read_text() == before


def test_interaction_count_conserved_across_workers(telemetry_settings, store):
    directory = telemetry_settings.heatmap_report_path
    counts = {0: 3, 1: 0, 2: 5}
    for index, count in counts.items():
        store.write_json(directory / worker_file_name(index, DataKind.INTERACTIONS), [_interaction(f"O{index}", i) for i in range(count)])

    target = AggregationMerger(telemetry_settings, store).aggregate(DataKind.INTERACTIONS)

    assert len(json.loads(target.read_text())) == sum(counts.values())


def test_network_counts_conserved_across_workers(telemetry_settings, store):
    shared = "https://api.example.com/items"
    failure = {"testName": "checkout", "responseCode": 503}
    workers = {
        0: {shared: _stats(4, 1, [failure]), "https://cdn.example.com/a.js": _stats(7, 0)},
        1: {shared: _stats(0, 2, [failure, failure]), "https://auth.example.com/login": _stats(1, 1, [{"testName": "login", "responseCode": 401}])},
        2: {shared: _stats(6, 0), "https://cdn.example.com/a.js": _stats(2, 3, [{"testName": "assets", "responseCode": 404}] * 3)},
        3: {"https://only.example.com/x": _stats(1, 0)},
    }
    directory = telemetry_settings.network_report_path
    for index, request_map in workers.items():
        store.write_json(directory / worker_file_name(index, DataKind.NETWORK), request_map)

    merged = json.loads(AggregationMerger(telemetry_settings, store).aggregate(DataKind.NETWORK).read_text())

    urls = {url for request_map in workers.values() for url in request_map}
    assert set(merged) == urls
    for url in urls:
        inputs = [request_map[url] for request_map in workers.values() if url in request_map]
        assert merged[url]["success"] + merged[url]["fail"] == sum(s["success"] + s["fail"] for s in inputs)
        assert merged[url]["fail"] == sum(s["fail"] for s in inputs)
        assert merged[url]["failures"] == [entry for s in inputs for entry in s["failures"]]
    assert merged == merge_request_maps(workers[index] for index in sorted(workers))


def test_aggregated_screenshots_match_the_pure_fold(telemetry_settings, store):
    directory = telemetry_settings.heatmap_report_path
    workers = [
        {"HomePage": {"screenshotPath": "HomePage/screenshot-worker-0.png", "boundingBoxOrigin": {"x": 0.0, "y": 0.0}}},
        {
            "HomePage": {"screenshotPath": "HomePage/screenshot-worker-1.png", "boundingBoxOrigin": {"x": 9.0, "y": 9.0}},
            "TopNav": {"screenshotPath": "TopNav/screenshot-worker-1.png", "boundingBoxOrigin": {"x": 5.0, "y": 6.0}},
        },
    ]
    for index, screenshot_map in enumerate(workers):
        store.write_json(directory / worker_file_name(index, DataKind.SCREENSHOTS), screenshot_map)

    target = AggregationMerger(telemetry_settings, store).aggregate(DataKind.SCREENSHOTS)

    assert json.loads(target.read_text()) == merge_screenshot_maps(workers)
    assert sorted(p.name for p in directory.iterdir()) == [target.name]


def test_no_worker_files_is_silent(telemetry_settings, store):
    results = AggregationMerger(telemetry_settings, store).aggregate_all()
    assert results == {DataKind.NETWORK: None, DataKind.INTERACTIONS: None, DataKind.SCREENSHOTS: None}
    assert not telemetry_settings.reports_path.exists()


def test_corrupt_file_aborts_and_deletes_nothing(telemetry_settings, store):
    directory = telemetry_settings.network_report_path
    good = store.write_json(directory / worker_file_name(0, DataKind.NETWORK), {"https://a.example.com/u": _stats(1, 0)})
    bad = store.write_text(directory / worker_file_name(1, DataKind.NETWORK), '{"https://a.example.com/u": {"success": 1,')

    with pytest.raises(AggregationError) as caught:
        AggregationMerger(telemetry_settings, store).aggregate(DataKind.NETWORK)

    assert caught.value.stage == "parse"
    assert caught.value.kind is DataKind.NETWORK
    assert caught.value.path == bad
    assert isinstance(caught.value.__cause__, json.JSONDecodeError)
    assert good.exists() and bad.exists()
    assert not merged_file_path(telemetry_settings, DataKind.NETWORK).exists()


def test_schema_invalid_file_is_treated_as_corrupt(telemetry_settings, store):
    directory = telemetry_settings.heatmap_report_path
    store.write_json(directory / worker_file_name(0, DataKind.SCREENSHOTS), {"HomePage": {"screenshotPath": "x.png"}})

    with pytest.raises(AggregationError) as caught:
        AggregationMerger(telemetry_settings, store).aggregate(DataKind.SCREENSHOTS)

    assert caught.value.stage == "validate"


def test_aggregate_all_follows_toggles(make_settings, store):
    settings = make_settings(RUN_HEATMAP_REPORT=False)
    store.write_json(settings.network_report_path / worker_file_name(0, DataKind.NETWORK), {})
    store.write_json(settings.heatmap_report_path / worker_file_name(0, DataKind.INTERACTIONS), [])

    results = AggregationMerger(settings, store).aggregate_all()

    assert list(results) == [DataKind.NETWORK]
    assert (settings.heatmap_report_path / worker_file_name(0, DataKind.INTERACTIONS)).exists()
