"""
Test Suite for the Signal/Score Accumulator

Covers recompute determinism, prefix recompute, selection caps and the
worked single-question scenario.
Run with: python tests/test_accumulator.py
"""

import unittest
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from flow_fixtures import minimal_config
from compass.contracts import AnswerPhase
from compass.core.accumulator import (
    Answer,
    SignalAccumulator,
    apply_answer,
    recompute,
    resolve_options,
    toggle_selection,
)
from compass.core.confidence_classifier import classify
from compass.core.routing_engine import decide, dominant_signal


class TestRecompute(unittest.TestCase):
    """Pure recompute over ordered answers."""

    def setUp(self):
        self.config = minimal_config()

    def test_empty_answers_give_zero_state(self):
        result = recompute(self.config, [])

        self.assertEqual(result.decision_log, ())
        self.assertTrue(all(v == 0 for v in result.path_scores.values()))
        self.assertEqual(result.signals.value("depth"), 0)
        self.assertIsNone(result.signals.scale("ambiguity"))

    def test_recompute_is_idempotent(self):
        answers = [Answer("q1", ("A", "B")), Answer("q2", ("clear",))]

        first = recompute(self.config, answers)
        second = recompute(self.config, answers)

        self.assertEqual(first, second)

    def test_prefix_recompute_matches_fresh_session(self):
        """Going back = recompute on the shorter list"""
        full = [Answer("q1", ("A",)), Answer("q2", ("clear",))]

        rewound = recompute(self.config, full[:1])
        fresh = recompute(self.config, [Answer("q1", ("A",))])

        self.assertEqual(rewound, fresh)
        self.assertEqual(rewound.path_scores["thrive"], 0)

    def test_scores_are_monotonic_for_non_negative_deltas(self):
        answers = [Answer("q1", ("A", "B")), Answer("q2", ("clear",))]
        previous = recompute(self.config, []).path_scores

        for i in range(1, len(answers) + 1):
            current = recompute(self.config, answers[:i]).path_scores
            for path_id, score in previous.items():
                self.assertGreaterEqual(current[path_id], score)
            previous = current

    def test_scales_are_last_write_wins(self):
        answers = [Answer("q2", ("clear",)), Answer("q2", ("unclear",))]

        result = recompute(self.config, answers)

        self.assertEqual(result.signals.scale("ambiguity"), "high")

    def test_unknown_question_is_skipped(self):
        result = recompute(self.config, [Answer("nope", ("A",)), Answer("q1", ("A",))])

        self.assertEqual(len(result.decision_log), 1)
        self.assertEqual(result.path_scores["levelUp"], 3)

    def test_unknown_option_is_ignored(self):
        result = recompute(self.config, [Answer("q1", ("A", "Z"))])

        self.assertEqual([e.option_id for e in result.decision_log], ["A"])

    def test_multi_answer_logs_one_entry_per_option(self):
        result = recompute(self.config, [Answer("q1", ("B", "A"))])

        # Presentation order, not click order
        self.assertEqual([e.option_id for e in result.decision_log], ["A", "B"])
        self.assertTrue(all(e.phase == AnswerPhase.DIAGNOSTIC for e in result.decision_log))

    def test_over_cap_answer_is_truncated(self):
        result = recompute(self.config, [Answer("q1", ("C", "A", "B"))])

        # Earliest-selected two survive
        self.assertEqual([e.option_id for e in result.decision_log], ["A", "C"])
        self.assertEqual(result.path_scores["moveAcross"], 0)


class TestWorkedScenario(unittest.TestCase):
    """Single multi-choice question, options A and B chosen."""

    def test_scenario(self):
        config = minimal_config()

        result = recompute(config, [Answer("q1", ("A", "B"))])
        confidence = classify(result.path_scores, config.confidence_bands)
        decision = decide(result.signals, confidence, config.routing_rules)

        self.assertEqual(result.path_scores["levelUp"], 3)
        self.assertEqual(result.path_scores["moveAcross"], 1)
        self.assertEqual(result.signals.value("depth"), 2)
        self.assertEqual(result.signals.value("scope"), 1)
        self.assertEqual(confidence.delta, 2)
        self.assertEqual(confidence.band, "early")
        self.assertEqual(dominant_signal(result.signals), "depth")
        self.assertEqual(decision.primary_path, "levelUp")
        self.assertEqual(decision.secondary_path, "moveAcross")


class TestSelectionCap(unittest.TestCase):
    """Interactive toggling against max_select."""

    def setUp(self):
        config = minimal_config()
        self.multi = config.diagnostic_questions[0]
        self.single = config.diagnostic_questions[1]

    def test_multi_toggle_adds_until_cap(self):
        selection = toggle_selection(self.multi, (), "A")
        selection = toggle_selection(self.multi, selection, "B")
        selection = toggle_selection(self.multi, selection, "C")

        self.assertEqual(selection, ("A", "B"))

    def test_multi_toggle_removes_selected(self):
        selection = toggle_selection(self.multi, ("A", "B"), "A")

        self.assertEqual(selection, ("B",))

    def test_single_choice_replaces(self):
        selection = toggle_selection(self.single, ("clear",), "unclear")

        self.assertEqual(selection, ("unclear",))

    def test_unknown_option_toggle_is_noop(self):
        self.assertEqual(toggle_selection(self.multi, ("A",), "Z"), ("A",))

    def test_resolve_options_never_exceeds_cap(self):
        options = resolve_options(self.multi, ("A", "B", "C"))

        self.assertLessEqual(len(options), self.multi.max_select)


class TestApplyAnswer(unittest.TestCase):

    def test_refinement_answers_never_touch_scores(self):
        config = minimal_config()
        question = config.refinement_questions("levelUp")[0]
        accumulator = SignalAccumulator(config.path_ids)

        entries = apply_answer(
            accumulator, question, Answer("lu1", ("people",)),
            AnswerPhase.REFINEMENT, path_id="levelUp", score_paths=False,
        )

        self.assertEqual(accumulator.path_scores, {p: 0 for p in config.path_ids})
        self.assertEqual(accumulator.totals["people"], 2)
        self.assertEqual(entries[0].path_id, "levelUp")
        self.assertEqual(entries[0].score_deltas, ())


if __name__ == '__main__':
    unittest.main()
