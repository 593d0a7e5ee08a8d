"""
Result Correlator Tests
=======================

Parsing, routing and prediction history.
"""

import json

import pytest

from signstream.errors import ProtocolError
from signstream.models.messages import (
    FinalResultMessage,
    ModelSwitchedMessage,
    PredictionMessage,
)
from signstream.stream.correlator import ResultCorrelator


def prediction(letter: str, confidence: float = 0.9, timestamp: float = 1.0) -> str:
    return json.dumps({
        "type": "prediction",
        "letter": letter,
        "confidence": confidence,
        "timestamp": timestamp,
    })


class TestDispatch:
    """Routing by message type."""

    def test_prediction_dispatched_to_subscriber(self, sample_prediction_message):
        correlator = ResultCorrelator()
        received = []
        correlator.subscribe("prediction", received.append)

        message = correlator.on_message(json.dumps(sample_prediction_message))

        assert isinstance(message, PredictionMessage)
        assert received == [message]
        assert message.letter == "Alif"
        assert message.confidence == 0.93

    def test_final_result_parsed(self, sample_final_result_message):
        correlator = ResultCorrelator()
        received = []
        correlator.subscribe("final_result", received.append)

        correlator.on_message(json.dumps(sample_final_result_message))

        assert len(received) == 1
        result = received[0].result
        assert isinstance(received[0], FinalResultMessage)
        assert result.is_top_4_correct is True
        assert result.top_prediction.word == "Hello"
        assert [p.rank for p in result.predictions] == [1, 2, 3, 4]

    def test_final_result_without_target_word(self):
        correlator = ResultCorrelator()
        received = []
        correlator.subscribe("final_result", received.append)

        correlator.on_message(json.dumps({
            "type": "final_result",
            "result": {"predictions": [], "is_top_4_correct": False},
        }))

        assert received[0].result.target_word is None
        assert received[0].result.top_prediction is None

    def test_model_switched_name(self):
        correlator = ResultCorrelator()
        received = []
        correlator.subscribe("model_switched", received.append)

        correlator.on_message(json.dumps({
            "type": "model_switched",
            "model_info": {"model_type": "pro", "num_classes": 64},
        }))

        assert isinstance(received[0], ModelSwitchedMessage)
        assert received[0].model_name == "pro"

    def test_extra_fields_tolerated(self):
        correlator = ResultCorrelator()
        received = []
        correlator.subscribe("pong", received.append)

        correlator.on_message(json.dumps({"type": "pong", "server_time": 12.5}))

        assert len(received) == 1

    def test_bytes_decoded(self):
        correlator = ResultCorrelator()
        received = []
        correlator.subscribe("pong", received.append)

        correlator.on_message(b'{"type": "pong"}')

        assert len(received) == 1

    def test_unknown_type_changes_nothing(self):
        """An unrecognized discriminator is ignored without errors."""
        correlator = ResultCorrelator()
        received = []
        errors = []
        for message_type in ("prediction", "final_result", "error"):
            correlator.subscribe(message_type, received.append)
        correlator.subscribe_errors(errors.append)

        result = correlator.on_message(json.dumps({"type": "hand_landmarks", "points": []}))

        assert result is None
        assert received == []
        assert errors == []
        assert correlator.history == []
        assert correlator.metrics.unknown_messages == 1

    def test_handler_failure_does_not_stop_dispatch(self):
        correlator = ResultCorrelator()
        received = []

        def broken(message):
            raise RuntimeError("handler bug")

        correlator.subscribe("prediction", broken)
        correlator.subscribe("prediction", received.append)

        correlator.on_message(prediction("Ba"))

        assert len(received) == 1

    def test_unsubscribe(self):
        correlator = ResultCorrelator()
        received = []
        unsubscribe = correlator.subscribe("prediction", received.append)

        unsubscribe()
        correlator.on_message(prediction("Ba"))

        assert received == []

    def test_subscribe_unknown_type_rejected(self):
        correlator = ResultCorrelator()

        with pytest.raises(ValueError):
            correlator.subscribe("hand_landmarks", lambda m: None)


class TestProtocolErrors:
    """Malformed inbound messages."""

    def test_invalid_json_reports_protocol_error(self):
        correlator = ResultCorrelator()
        errors = []
        correlator.subscribe_errors(errors.append)

        assert correlator.on_message("{not json") is None

        assert len(errors) == 1
        assert isinstance(errors[0], ProtocolError)
        assert str(errors[0]).startswith("Failed to parse server response")
        assert errors[0].raw == "{not json"
        assert correlator.metrics.parse_errors == 1

    def test_non_object_reports_protocol_error(self):
        correlator = ResultCorrelator()
        errors = []
        correlator.subscribe_errors(errors.append)

        correlator.on_message("[1, 2, 3]")

        assert len(errors) == 1

    def test_invalid_fields_report_protocol_error(self):
        correlator = ResultCorrelator()
        errors = []
        received = []
        correlator.subscribe_errors(errors.append)
        correlator.subscribe("prediction", received.append)

        correlator.on_message(json.dumps({"type": "prediction", "letter": "Alif"}))

        assert received == []
        assert "Invalid prediction message" in str(errors[0])

    def test_parsing_continues_after_error(self):
        correlator = ResultCorrelator()
        received = []
        correlator.subscribe("prediction", received.append)

        correlator.on_message("garbage")
        correlator.on_message(prediction("Alif"))

        assert len(received) == 1


class TestHistory:
    """Recent prediction history."""

    def test_history_most_recent_first(self):
        correlator = ResultCorrelator()

        for i, letter in enumerate(["Alif", "Ba", "Ta"]):
            correlator.on_message(prediction(letter, timestamp=float(i)))

        assert [p.label for p in correlator.history] == ["Ta", "Ba", "Alif"]
        assert correlator.latest.label == "Ta"

    def test_history_capped(self):
        correlator = ResultCorrelator(history_size=8)

        for i in range(12):
            correlator.on_message(prediction(f"L{i}", timestamp=float(i)))

        history = correlator.history
        assert len(history) == 8
        assert history[0].label == "L11"
        assert history[-1].label == "L4"

    def test_clear_history(self):
        correlator = ResultCorrelator()
        correlator.on_message(prediction("Alif"))

        correlator.clear_history()

        assert correlator.history == []
        assert correlator.latest is None

    def test_invalid_history_size(self):
        with pytest.raises(ValueError):
            ResultCorrelator(history_size=0)
