"""
Test suite for the differential expression module
"""
import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

import numpy as np
import pandas as pd
import pytest

from methylflow.config import Config, SampleGroupRules
from methylflow.differential import (DifferentialExpressionRunner,
                                     PyDESeq2Analyzer, assign_sample_groups,
                                     classify_results, drop_untested,
                                     filter_low_counts, prepare_comparison)
from methylflow.exceptions import DifferentialAnalysisError, EmptyGroupError

from .conftest import make_counts


class TestSampleGrouping(unittest.TestCase):
    """Control / Methylated / Removal assignment"""

    def test_assign_sample_groups(self):
        groups = assign_sample_groups(["control_1", "NoDox-2", "dox_1", "removal_1", "input"])
        self.assertEqual(
            groups.tolist(), ["Control", "Control", "Methylated", "Removal", None]
        )

    def test_prepare_comparison_excludes_removal(self):
        counts = make_counts()
        data = prepare_comparison(counts)

        self.assertEqual(data.control_samples, ["control_1", "control_2", "control_3"])
        self.assertEqual(data.treated_samples, ["dox_1", "dox_2", "dox_3"])
        self.assertEqual(data.excluded["removal"], ["removal_1"])
        self.assertNotIn("removal_1", data.counts.columns)
        self.assertEqual(data.groups.tolist(), ["Control"] * 3 + ["Methylated"] * 3)

    def test_empty_group(self):
        counts = make_counts()[["control_1", "control_2", "removal_1"]]
        with self.assertRaises(EmptyGroupError) as cm:
            prepare_comparison(counts)
        self.assertEqual(cm.exception.group, "Methylated")
        self.assertIn("removal_1", cm.exception.samples)

    def test_custom_rules(self):
        counts = pd.DataFrame({"wt_a": [1], "wt_b": [2], "ko_a": [3]})
        data = prepare_comparison(counts, SampleGroupRules(control=["^wt"], treated=["^ko"]))
        self.assertEqual(data.treated_samples, ["ko_a"])


class TestResultTables(unittest.TestCase):
    """Prefiltering and result classification"""

    def test_filter_low_counts(self):
        counts = pd.DataFrame({"a": [5, 1, 0], "b": [5, 2, 0]}, index=["x", "y", "z"])
        self.assertEqual(filter_low_counts(counts, 10).index.tolist(), ["x"])

    def test_classify_and_drop_untested(self):
        results = pd.DataFrame(
            {
                "log2FoldChange": [2.0, -1.5, 0.3, np.nan, 1.0],
                "padj": [0.01, 0.001, 0.5, np.nan, np.nan],
            },
            index=["up", "down", "flat", "failed", "filtered"],
        )
        classified = classify_results(results, fdr_threshold=0.05)
        self.assertEqual(
            classified["regulation"].tolist(),
            ["Up-regulated", "Down-regulated", "Not Significant", "Not Significant", "Not Significant"],
        )
        self.assertEqual(drop_untested(classified).index.tolist(), ["up", "down", "flat"])


def test_pydeseq2_detects_changed_genes(test_config):
    runner = DifferentialExpressionRunner(test_config)
    result = runner.run(make_counts(), method="pydeseq2")
    table = result.results_table

    assert result.success
    assert result.method == "pydeseq2"
    assert result.excluded_samples["removal"] == ["removal_1"]
    assert list(table.columns[:6]) == ["baseMean", "log2FoldChange", "lfcSE", "stat", "pvalue", "padj"]
    # Methylated vs Control: GENE1 falls, GENE6 rises
    assert table.loc["GENE1", "log2FoldChange"] < -1.5
    assert table.loc["GENE6", "log2FoldChange"] > 1.5
    assert table.loc["GENE1", "significant"]
    assert table.loc["GENE6", "regulation"] == "Up-regulated"
    assert abs(table.loc["GENE3", "log2FoldChange"]) < 0.5
    assert result.n_up_regulated >= 1 and result.n_down_regulated >= 1

    assert result.output_files["results"].exists()
    assert (runner.output_dir / "sample_groups.csv").exists()

    size_factors = pd.read_csv(runner.output_dir / "pydeseq2_size_factors.csv", index_col=0)
    assert size_factors.index.tolist() == ["control_1", "control_2", "control_3", "dox_1", "dox_2", "dox_3"]
    dispersions = pd.read_csv(runner.output_dir / "pydeseq2_dispersions.csv", index_col=0)
    assert set(dispersions.index) == set(table.index)


def test_pydeseq2_without_independent_filtering_tests_every_gene(test_config):
    test_config.differential["independent_filtering"] = False
    test_config.differential["cooks_filter"] = False
    runner = DifferentialExpressionRunner(test_config)
    table = runner.run(make_counts(), method="pydeseq2").results_table

    assert table["padj"].notna().all()
    assert len(drop_untested(table)) == len(table)


def test_pydeseq2_is_the_default(test_config):
    runner = DifferentialExpressionRunner(test_config)
    assert isinstance(runner.analyzers[test_config.differential["method"]], PyDESeq2Analyzer)


def test_unknown_method(test_config):
    runner = DifferentialExpressionRunner(test_config)
    with pytest.raises(ValueError):
        runner.run(make_counts(), method="limma")


class TestDESeq2Backend(unittest.TestCase):
    """DESeq2 through a mocked R interface"""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config = Config(data_dir=self.temp_dir, output_dir=os.path.join(self.temp_dir, "out"))
        self.r_interface = MagicMock()
        self.r_interface.check_packages.return_value = {"DESeq2": True}
        self.scripts = []

        def run_script(r_code, working_dir=None):
            self.scripts.append(r_code)
            counts = pd.read_csv(Path(working_dir) / "counts.csv", index_col=0)
            pd.DataFrame(
                {
                    "gene": counts.index,
                    "baseMean": counts.mean(axis=1).values,
                    "log2FoldChange": 0.5,
                    "lfcSE": 0.1,
                    "stat": 5.0,
                    "pvalue": 1e-4,
                    "padj": 1e-3,
                }
            ).to_csv(Path(working_dir) / "deseq2_results.csv", index=False)
            return {"success": True, "output": "", "error": None, "working_dir": str(working_dir)}

        self.r_interface.run_script.side_effect = run_script

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_deseq2_run(self):
        runner = DifferentialExpressionRunner(self.config, r_interface=self.r_interface)
        result = runner.run(make_counts(), method="DESeq2")

        self.assertEqual(result.method, "DESeq2")
        self.assertEqual(result.n_tested, 36)
        self.assertEqual(result.n_up_regulated, 36)

        script = self.scripts[0]
        self.assertIn('ref = "Control"', script)
        self.assertIn('contrast = c("condition", "Methylated", "Control")', script)

        coldata = pd.read_csv(runner.output_dir / "deseq2" / "coldata.csv", index_col=0)
        self.assertEqual(sorted(coldata["condition"].unique()), ["Control", "Methylated"])
        self.assertNotIn("removal_1", coldata.index)

    def test_required_packages_come_from_config(self):
        self.config.r_config["required_packages"] = ["DESeq2", "apeglm"]
        self.r_interface.check_packages.return_value = {"DESeq2": True, "apeglm": False}
        runner = DifferentialExpressionRunner(self.config, r_interface=self.r_interface)

        with self.assertRaises(DifferentialAnalysisError) as cm:
            runner.run(make_counts(), method="DESeq2")

        self.r_interface.check_packages.assert_called_with(["DESeq2", "apeglm"])
        self.assertIn("apeglm", str(cm.exception))

    def test_missing_r_package(self):
        self.r_interface.check_packages.return_value = {"DESeq2": False}
        runner = DifferentialExpressionRunner(self.config, r_interface=self.r_interface)
        with self.assertRaises(DifferentialAnalysisError):
            runner.run(make_counts(), method="DESeq2")

    def test_failed_r_script(self):
        self.r_interface.run_script.side_effect = None
        self.r_interface.run_script.return_value = {
            "success": False,
            "output": None,
            "error": "Error in DESeq(dds)",
            "working_dir": self.temp_dir,
        }
        runner = DifferentialExpressionRunner(self.config, r_interface=self.r_interface)
        with self.assertRaises(DifferentialAnalysisError) as cm:
            runner.run(make_counts(), method="DESeq2")
        self.assertIn("Error in DESeq", str(cm.exception))
