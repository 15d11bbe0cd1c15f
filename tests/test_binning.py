"""
Test suite for fold-change categories
"""
import unittest

import numpy as np
import pandas as pd

from methylflow.genomics import (DECREASE, EFFECT_CLASSES, INCREASE,
                                 SMALL_DECREASE, CategoryBinner)
from methylflow.genomics.binning import default_class_map, interval_labels


def association_rows(fold_changes, delta=0.5, significant=False):
    fold_changes = np.asarray(fold_changes, dtype=float)
    return pd.DataFrame(
        {
            "delta_methylation": delta,
            "fold_change": fold_changes,
            "log2FoldChange": np.log2(fold_changes),
            "significant": significant,
        }
    )


class TestLabels(unittest.TestCase):

    def test_interval_labels(self):
        self.assertEqual(
            interval_labels([0, 0.3, 0.5, 0.7, 0.9, 1.1, np.inf]),
            ["(0,0.3]", "(0.3,0.5]", "(0.5,0.7]", "(0.7,0.9]", "(0.9,1.1]", "(1.1,Inf]"],
        )

    def test_default_class_map(self):
        class_map = default_class_map(interval_labels([0, 0.3, 0.5, 0.7, 0.9, 1.1, np.inf]))
        self.assertEqual(class_map["(1.1,Inf]"], INCREASE)
        self.assertEqual(class_map["(0.9,1.1]"], INCREASE)
        self.assertEqual(class_map["(0.7,0.9]"], SMALL_DECREASE)
        self.assertEqual(class_map["(0,0.3]"], DECREASE)


class TestCategoryBinner(unittest.TestCase):
    """Threshold filtering, bins and summaries"""

    def setUp(self):
        self.binner = CategoryBinner()

    def test_threshold_is_strict(self):
        df = pd.concat(
            [
                association_rows([1.0], delta=0.3),
                association_rows([1.0], delta=0.3000001),
                association_rows([1.0], delta=-0.8),
            ],
            ignore_index=True,
        )
        classified = self.binner.classify(df)
        self.assertEqual(classified.index.tolist(), [1])

    def test_right_closed_boundaries(self):
        df = association_rows([0.0, 0.3, 0.30001, 0.9, 1.1, 1.10001, 25.0])
        classified = self.binner.classify(df)

        self.assertEqual(
            classified["fc_bin"].astype(str).tolist(),
            ["(0,0.3]", "(0,0.3]", "(0.3,0.5]", "(0.7,0.9]", "(0.9,1.1]", "(1.1,Inf]", "(1.1,Inf]"],
        )
        self.assertEqual(
            classified["effect_class"].astype(str).tolist(),
            [DECREASE, DECREASE, DECREASE, SMALL_DECREASE, INCREASE, INCREASE, INCREASE],
        )

    def test_partition_sums(self):
        rng = np.random.RandomState(7)
        df = association_rows(np.exp(rng.normal(scale=0.8, size=500)))
        summary = self.binner.summarize(self.binner.classify(df))

        self.assertEqual(summary.total, 500)
        self.assertEqual(sum(summary.bin_counts.values()), 500)
        self.assertEqual(sum(summary.class_counts.values()), 500)
        self.assertAlmostEqual(sum(summary.class_percentages.values()), 100.0)
        self.assertEqual(list(summary.class_counts), EFFECT_CLASSES)

    def test_classify_is_idempotent(self):
        rng = np.random.RandomState(11)
        df = association_rows(np.exp(rng.normal(size=200)), delta=rng.uniform(0, 1, size=200))
        once = self.binner.classify(df)
        twice = self.binner.classify(once)

        self.assertEqual(once.index.tolist(), twice.index.tolist())
        self.assertEqual(
            once["effect_class"].astype(str).tolist(), twice["effect_class"].astype(str).tolist()
        )

    def test_headline_percentages(self):
        # 763 Increase, 433 SmallDecrease, 867 Decrease -> 37% / 21% / 42% of 2063
        df = pd.concat(
            [
                association_rows([1.0] * 400 + [2.5] * 363),
                association_rows([0.8] * 433),
                association_rows([0.2] * 300 + [0.4] * 300 + [0.6] * 267),
                association_rows([0.1] * 50, delta=0.1),
            ],
            ignore_index=True,
        )
        summary = self.binner.summarize(self.binner.classify(df))

        self.assertEqual(summary.total, 2063)
        self.assertEqual(summary.class_counts, {INCREASE: 763, SMALL_DECREASE: 433, DECREASE: 867})
        rounded = {c: round(p) for c, p in summary.class_percentages.items()}
        self.assertEqual(rounded, {INCREASE: 37, SMALL_DECREASE: 21, DECREASE: 42})
        self.assertAlmostEqual(summary.class_percentages[INCREASE], 100.0 * 763 / 2063)

    def test_significance_split(self):
        df = pd.concat(
            [association_rows([2.0, 0.2], significant=True), association_rows([2.0], significant=False)],
            ignore_index=True,
        )
        summary = self.binner.summarize(self.binner.classify(df))
        self.assertEqual(summary.significant_class_counts["significant"][INCREASE], 1)
        self.assertEqual(summary.significant_class_counts["significant"][DECREASE], 1)
        self.assertEqual(summary.significant_class_counts["not_significant"][INCREASE], 1)

    def test_empty_input(self):
        summary = self.binner.summarize(self.binner.classify(association_rows([1.0], delta=0.0)))
        self.assertEqual(summary.total, 0)
        self.assertEqual(summary.class_percentages, {c: 0.0 for c in EFFECT_CLASSES})

    def test_summary_frame(self):
        summary = self.binner.summarize(self.binner.classify(association_rows([0.2, 1.0, 1.0])))
        frame = summary.to_frame()
        self.assertEqual(frame["effect_class"].tolist(), EFFECT_CLASSES)
        self.assertEqual(frame["count"].tolist(), [2, 0, 1])

    def test_custom_boundaries_and_class_map(self):
        binner = CategoryBinner(
            threshold_high=0.2,
            boundaries=[0, 1, np.inf],
            class_map={"(0,1]": DECREASE, "(1,Inf]": INCREASE},
        )
        classified = binner.classify(association_rows([0.5, 1.0, 3.0], delta=0.25))
        self.assertEqual(
            classified["effect_class"].astype(str).tolist(), [DECREASE, DECREASE, INCREASE]
        )

    def test_unsorted_boundaries_rejected(self):
        with self.assertRaises(ValueError):
            CategoryBinner(boundaries=[0, 1, 0.5])


class TestLog2Variant(unittest.TestCase):
    """Diagnostic log2 bins: every row is binned, Increase iff log2FC > 0"""

    def test_every_row_binned(self):
        binner = CategoryBinner()
        df = association_rows([2 ** -10, 2 ** -0.2, 1.0, 2 ** 0.2, 2 ** 10])
        classified = binner.classify_log2(df)

        self.assertFalse(classified["log2_bin"].isna().any())
        self.assertEqual(classified["log2_bin"].astype(str).iloc[0], "(-Inf,-6]")
        self.assertEqual(classified["log2_bin"].astype(str).iloc[-1], "(6,Inf]")
        self.assertEqual(
            classified["effect_class"].astype(str).tolist(),
            [DECREASE, DECREASE, DECREASE, INCREASE, INCREASE],
        )

    def test_log2_summary(self):
        binner = CategoryBinner()
        summary = binner.summarize(
            binner.classify_log2(association_rows([0.5, 2.0, 4.0])), bin_column="log2_bin"
        )
        self.assertEqual(summary.class_counts, {INCREASE: 2, DECREASE: 1})
        self.assertEqual(len(summary.bin_counts), 12)
        self.assertEqual(sum(summary.bin_counts.values()), 3)
