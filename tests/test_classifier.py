"""Tests for per-frame fist / palm classification."""

import threading

import numpy as np
import pytest

from gesture_morph.classifier import GestureClassifier, LatestGestureSlot
from gesture_morph.gestures import NO_SIGNAL, GestureLabel, GestureResult
from gesture_morph.synthetic import synthetic_hand


def make_fist():
    return synthetic_hand(4)


def make_open_hand():
    return synthetic_hand(0)


class TestClassify:
    def test_fist(self):
        result = GestureClassifier().classify(make_fist(), 1.0)
        assert result == GestureResult(GestureLabel.CLOSED_FIST, True)

    def test_open_palm(self):
        result = GestureClassifier().classify(make_open_hand(), 1.0)
        assert result == GestureResult(GestureLabel.OPEN_PALM, True)

    def test_three_curled_is_fist(self):
        result = GestureClassifier().classify(synthetic_hand(3), 1.0)
        assert result.label == GestureLabel.CLOSED_FIST

    def test_two_curled_is_open(self):
        result = GestureClassifier().classify(synthetic_hand(2), 1.0)
        assert result.label == GestureLabel.OPEN_PALM

    def test_no_hand(self):
        result = GestureClassifier().classify(None, 1.0)
        assert result == NO_SIGNAL
        assert result.label == GestureLabel.NONE
        assert result.is_present is False

    def test_list_input(self):
        result = GestureClassifier().classify(make_fist().tolist(), 1.0)
        assert result.label == GestureLabel.CLOSED_FIST

    def test_planar_landmarks_accepted(self):
        result = GestureClassifier().classify(make_fist()[:, :2], 1.0)
        assert result.label == GestureLabel.CLOSED_FIST

    def test_depth_is_ignored(self):
        hand = make_open_hand()
        hand[[8, 12, 16, 20], 2] = -5.0
        result = GestureClassifier().classify(hand, 1.0)
        assert result.label == GestureLabel.OPEN_PALM


class TestTimestampDedup:
    def test_same_timestamp_is_no_signal(self):
        clf = GestureClassifier()
        assert clf.classify(make_fist(), 5.0).is_present
        assert clf.classify(make_fist(), 5.0) == NO_SIGNAL

    def test_earlier_timestamp_is_no_signal(self):
        clf = GestureClassifier()
        clf.classify(make_fist(), 5.0)
        assert clf.classify(make_open_hand(), 4.0) == NO_SIGNAL
        assert clf.last_timestamp == 5.0

    def test_newer_timestamp_processed(self):
        clf = GestureClassifier()
        clf.classify(make_fist(), 5.0)
        result = clf.classify(make_open_hand(), 5.1)
        assert result.label == GestureLabel.OPEN_PALM
        assert clf.frames_processed == 2

    def test_absent_hand_still_advances_timestamp(self):
        clf = GestureClassifier()
        clf.classify(None, 2.0)
        assert clf.last_timestamp == 2.0
        assert clf.classify(make_fist(), 2.0) == NO_SIGNAL

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_timestamp_is_no_signal(self, bad):
        clf = GestureClassifier()
        clf.classify(make_fist(), 5.0)
        assert clf.classify(make_open_hand(), bad) == NO_SIGNAL
        assert clf.last_timestamp == 5.0
        assert clf.frames_processed == 1
        assert clf.classify(make_open_hand(), 4.0) == NO_SIGNAL
        assert clf.classify(make_open_hand(), 6.0).label == GestureLabel.OPEN_PALM

    def test_non_finite_first_timestamp(self):
        clf = GestureClassifier()
        assert clf.classify(make_fist(), float("nan")) == NO_SIGNAL
        assert clf.last_timestamp is None
        assert clf.classify(make_fist(), 0.0).is_present

    def test_reset_forgets_timestamp(self):
        clf = GestureClassifier()
        clf.classify(make_fist(), 3.0)
        clf.reset()
        assert clf.last_timestamp is None
        assert clf.classify(make_fist(), 3.0).is_present


class TestMalformedInput:
    @pytest.mark.parametrize("landmarks", [
        np.zeros((20, 3)),
        np.zeros((21, 4)),
        np.zeros(63),
        [[0.0, 0.0, 0.0]] * 5,
        "not landmarks",
        [[0.1, "x", 0.2]] * 21,
    ])
    def test_fails_closed(self, landmarks):
        clf = GestureClassifier()
        assert clf.classify(landmarks, 1.0) == NO_SIGNAL
        assert clf.frames_rejected == 1

    def test_nan_fails_closed(self):
        hand = make_fist()
        hand[8, 0] = np.nan
        assert GestureClassifier().classify(hand, 1.0) == NO_SIGNAL

    def test_inf_fails_closed(self):
        hand = make_open_hand()
        hand[0, 1] = np.inf
        assert GestureClassifier().classify(hand, 1.0) == NO_SIGNAL

    def test_classify_landmarks_without_dedup(self):
        clf = GestureClassifier()
        for _ in range(3):
            assert clf.classify_landmarks(make_fist()).label == GestureLabel.CLOSED_FIST
        assert clf.classify_landmarks(np.zeros((3, 3))) == NO_SIGNAL
        assert clf.last_timestamp is None


class TestNoisyHands:
    def test_small_jitter_keeps_label(self):
        rng = np.random.default_rng(0)
        clf = GestureClassifier()
        for i in range(50):
            fist = synthetic_hand(4, noise=0.005, rng=rng)
            assert clf.classify(fist, float(i)).label == GestureLabel.CLOSED_FIST


class TestLatestGestureSlot:
    def test_initially_no_signal(self):
        slot = LatestGestureSlot()
        result, version = slot.read()
        assert result == NO_SIGNAL
        assert version == 0
        assert slot.timestamp is None

    def test_publish_overwrites(self):
        slot = LatestGestureSlot()
        slot.publish(GestureResult(GestureLabel.OPEN_PALM, True), 1.0)
        slot.publish(GestureResult(GestureLabel.CLOSED_FIST, True), 2.0)
        result, version = slot.read()
        assert result.label == GestureLabel.CLOSED_FIST
        assert version == 2
        assert slot.timestamp == 2.0

    def test_concurrent_publish(self):
        slot = LatestGestureSlot()
        fist = GestureResult(GestureLabel.CLOSED_FIST, True)

        def worker():
            for i in range(200):
                slot.publish(fist, float(i))

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        result, version = slot.read()
        assert result == fist
        assert version == 800
