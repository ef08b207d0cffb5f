"""
Tests for the batch request runner.

Validates:
- Response shape of every operation
- STRICT mode raises on the first failure
- TOLERANT mode records failures and continues
"""

import pytest

from atomreason import InferenceEngine
from atomreason.batch import BatchRunner, ErrorMode
from atomreason.errors import InvalidInferenceInput, NotFound


@pytest.fixture
def runner() -> BatchRunner:
    return BatchRunner(InferenceEngine())


def seed_requests() -> list[dict]:
    return [
        {"operation": "addAtom", "atomType": "Concept", "atomName": "Human",
         "truthValue": {"strength": 0.9, "confidence": 0.8}},
        {"operation": "addAtom", "atomType": "Concept", "atomName": "Animal"},
        {"operation": "addAtom", "atomType": "Inheritance", "outgoing": [1, 2],
         "truthValue": [0.95, 0.9]},
    ]


class TestOperations:
    """Test suite for individual operations."""

    def test_add_atom(self, runner):
        report = runner.run(seed_requests())
        first = report.results[0]
        assert first == {
            "atomId": 1,
            "atomType": "Concept",
            "atomName": "Human",
            "outgoing": [],
            "truthValue": {"strength": 0.9, "confidence": 0.8},
            "success": True,
        }
        assert report.results[2]["outgoing"] == [1, 2]
        assert report.errors == 0

    def test_pattern_match(self, runner):
        runner.run(seed_requests())
        response = runner.execute({
            "operation": "patternMatch",
            "pattern": '(Inheritance $X (Concept "Animal"))',
        })
        assert response["matchCount"] == 1
        match = response["matches"][0]
        assert match["matchId"] == 1
        assert match["atomId"] == 3
        assert match["bindings"] == {"$X": 1}
        assert match["truthValue"] == {"strength": 0.95, "confidence": 0.9}

    def test_query_atoms(self, runner):
        runner.run(seed_requests())
        response = runner.execute({"operation": "queryAtoms", "query": "Hum"})
        assert response["count"] == 1
        assert response["atoms"][0]["atomName"] == "Human"

    def test_truth_values(self, runner):
        runner.run(seed_requests())
        response = runner.execute({
            "operation": "setTruthValue", "atomId": 2,
            "truthValue": {"strength": 0.5, "confidence": 0.5},
        })
        assert response["previousTruthValue"] == {"strength": 0.8, "confidence": 0.9}
        assert response["truthValue"] == {"strength": 0.5, "confidence": 0.5}
        got = runner.execute({"operation": "getTruthValue", "atomId": 2})
        assert got == {"atomId": 2, "truthValue": {"strength": 0.5, "confidence": 0.5}}

    def test_infer(self, runner):
        runner.run(seed_requests())
        response = runner.execute({
            "operation": "infer",
            "strategy": "backwardChaining",
            "params": {"confidenceThreshold": 0.5},
            "inputs": {"goal": '(Inheritance (Concept "Human") (Concept "Animal"))'},
        })
        assert response["reasoningType"] == "backwardChaining"
        assert response["goalProven"] is True

    def test_later_requests_see_earlier_atoms(self, runner):
        requests = seed_requests() + [
            {"operation": "patternMatch", "pattern": "(Inheritance $X $Y)"},
        ]
        report = runner.run(requests)
        assert report.results[-1]["matchCount"] == 1


class TestErrorModes:
    """Test suite for STRICT and TOLERANT runs."""

    def test_strict_raises(self, runner):
        with pytest.raises(NotFound):
            runner.run([
                {"operation": "addAtom", "atomType": "Concept", "atomName": "A"},
                {"operation": "getTruthValue", "atomId": 99},
            ])

    def test_tolerant_continues(self):
        runner = BatchRunner(InferenceEngine(), mode="tolerant")
        report = runner.run([
            {"operation": "addAtom", "atomType": "Concept", "atomName": "A"},
            {"operation": "getTruthValue", "atomId": 99},
            {"operation": "addAtom", "atomType": "Concept", "atomName": "B"},
        ])
        assert report.errors == 1
        assert report.succeeded == 2
        assert report.results[1] == {
            "error": report.results[1]["error"],
            "errorType": "NotFound",
            "index": 1,
        }
        assert report.results[2]["atomId"] == 2

    @pytest.mark.parametrize("request_", [
        {"operation": "explode"},
        {"atomType": "Concept"},
        "addAtom",
        {"operation": "getTruthValue"},
        {"operation": "addAtom", "atomType": "Concept", "atomName": "A", "color": "red"},
    ])
    def test_malformed_requests(self, runner, request_):
        with pytest.raises(InvalidInferenceInput):
            runner.execute(request_)

    def test_tolerant_error_types(self):
        runner = BatchRunner(InferenceEngine(), mode=ErrorMode.TOLERANT)
        report = runner.run([
            {"operation": "explode"},
            {"operation": "addAtom", "atomType": "Widget", "atomName": "w"},
            {"operation": "queryAtoms", "atomType": "Widget"},
            {"operation": "infer", "strategy": "deductive"},
            {"operation": "addAtom", "atomType": "Inheritance", "outgoing": [5, 6]},
        ])
        assert [r["errorType"] for r in report.results] == [
            "InvalidInferenceInput",
            "AtomSpaceError",
            "AtomSpaceError",
            "UnknownStrategy",
            "DanglingReference",
        ]
        assert report.errors == 5

    def test_report_dict(self, runner):
        data = runner.run(seed_requests()).to_dict()
        assert data["errors"] == 0
        assert data["succeeded"] == 3
        assert len(data["results"]) == 3
        assert data["elapsedMs"] >= 0
