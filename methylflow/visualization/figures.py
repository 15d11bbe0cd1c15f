"""
Figure 5 plots

Panel A is the delta methylation vs log2 fold change scatter, panel B the
bar chart of fold-change categories. Both panels are also pickled as
matplotlib Figure objects so they can be reloaded and re-rendered (or
composed into a multi-panel figure) outside the pipeline process.
"""

import logging
import math
import pickle
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from ..genomics.binning import EFFECT_CLASSES, CategorySummary, default_class_map

logger = logging.getLogger(__name__)

DEFAULT_CLASS_COLORS = {
    "Increase": "#D55E00",
    "SmallDecrease": "#E69F00",
    "Decrease": "#0072B2",
}


def save_chart_object(fig: plt.Figure, path: Union[str, Path]) -> Path:
    """Pickle a figure so it can be re-rendered in another process"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as handle:
        pickle.dump(fig, handle)
    logger.info(f"Chart object saved to {path}")
    return path


def load_chart_object(path: Union[str, Path]) -> plt.Figure:
    """Load a figure written by save_chart_object"""
    with open(path, "rb") as handle:
        fig = pickle.load(handle)
    if not isinstance(fig, plt.Figure):
        raise TypeError(f"{path} does not contain a matplotlib Figure")
    return fig


class Figure5Plotter:
    """Class for creating the Figure 5 panels and diagnostics"""

    def __init__(self, output_dir: Union[str, Path], params: Optional[Dict[str, Any]] = None):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        params = params or {}
        self.save_formats = params.get("save_formats", ["png", "pdf"])
        self.dpi = params.get("dpi", 300)
        self.point_size = params.get("point_size", 6)
        self.alpha = params.get("alpha", 0.6)
        self.class_colors = {**DEFAULT_CLASS_COLORS, **params.get("class_colors", {})}
        # JSON configs turn the boolean keys into strings
        self.significance_colors = {
            (key if isinstance(key, bool) else str(key).lower() == "true"): color
            for key, color in params.get(
                "significance_colors", {True: "#CC3311", False: "#BBBBBB"}
            ).items()
        }

    def plot_panel_a(
        self, associations: pd.DataFrame, threshold: float = 0.3, title: Optional[str] = None
    ) -> plt.Figure:
        """
        Scatter of delta methylation against log2 fold change

        Args:
            associations: Association table with delta_methylation,
                log2FoldChange and significant
            threshold: Delta methylation threshold drawn as a dashed line
            title: Optional custom title

        Returns:
            matplotlib Figure object
        """
        fig, ax = plt.subplots(1, 1, figsize=(6, 5))

        plot_df = associations.assign(significant=associations["significant"].astype(bool))
        sns.scatterplot(
            data=plot_df,
            x="delta_methylation",
            y="log2FoldChange",
            hue="significant",
            palette=self.significance_colors,
            s=self.point_size,
            alpha=self.alpha,
            linewidth=0,
            ax=ax,
        )

        ax.axvline(x=threshold, color="black", linestyle="--", alpha=0.5)
        ax.axhline(y=0, color="grey", linewidth=0.8)
        ax.set_xlabel("Delta methylation (treated - control)")
        ax.set_ylabel("log2 fold change (Methylated / Control)")
        ax.set_title(title or f"Methylation vs expression (n = {len(plot_df)})")
        ax.legend(title="padj < FDR", loc="lower left")

        plt.tight_layout()
        return fig

    def plot_stratified(self, associations: pd.DataFrame, threshold: float = 0.3) -> plt.Figure:
        """One delta methylation vs log2 fold change panel per A-value bin"""
        bins = sorted(associations["A_bin"].unique())
        n_cols = 3
        n_rows = max(1, math.ceil(len(bins) / n_cols))

        fig, axes = plt.subplots(
            n_rows, n_cols, figsize=(4 * n_cols, 3.5 * n_rows), sharex=True, sharey=True, squeeze=False
        )

        for ax, a_bin in zip(axes.flat, bins):
            subset = associations.loc[associations["A_bin"] == a_bin]
            ax.scatter(
                subset["delta_methylation"],
                subset["log2FoldChange"],
                s=self.point_size,
                alpha=self.alpha,
                color="#444444",
                linewidths=0,
            )
            ax.axvline(x=threshold, color="black", linestyle="--", alpha=0.5)
            ax.axhline(y=0, color="grey", linewidth=0.8)
            ax.set_title(
                f"A bin {a_bin}: A in [{subset['A'].min():.1f}, {subset['A'].max():.1f}]",
                fontsize=10,
            )

        for ax in list(axes.flat)[len(bins):]:
            ax.set_visible(False)

        fig.supxlabel("Delta methylation")
        fig.supylabel("log2 fold change")
        plt.tight_layout()
        return fig

    def plot_panel_b(
        self,
        summary: CategorySummary,
        class_map: Optional[Dict[str, str]] = None,
        title: Optional[str] = None,
    ) -> plt.Figure:
        """
        Percentage of robustly methylated regions per fold-change bin

        Bars are coloured by effect class; the class percentages are shown
        in the legend.
        """
        labels = list(summary.bin_percentages)
        class_map = class_map or default_class_map(labels)

        fig, ax = plt.subplots(1, 1, figsize=(7, 5))
        bars = ax.bar(
            labels,
            [summary.bin_percentages[label] for label in labels],
            color=[self.class_colors[class_map[label]] for label in labels],
            alpha=0.9,
        )

        for bar, label in zip(bars, labels):
            ax.text(
                bar.get_x() + bar.get_width() / 2.0,
                bar.get_height(),
                f"{summary.bin_counts[label]}",
                ha="center",
                va="bottom",
                fontsize=9,
            )

        handles = [
            plt.Rectangle((0, 0), 1, 1, color=self.class_colors[c])
            for c in EFFECT_CLASSES
        ]
        legend_labels = [
            f"{c} ({summary.class_percentages.get(c, 0.0):.0f}%)" for c in EFFECT_CLASSES
        ]
        ax.legend(handles, legend_labels, loc="upper left")

        ax.set_xlabel("Fold change (Methylated / Control)")
        ax.set_ylabel("Regions (%)")
        ax.set_title(title or f"Expression change of methylated genes (n = {summary.total})")

        plt.tight_layout()
        return fig

    def plot_log2_bars(self, summary: CategorySummary) -> plt.Figure:
        """Diagnostic bar chart of the log2 fold-change bins"""
        labels = list(summary.bin_percentages)

        fig, ax = plt.subplots(1, 1, figsize=(max(8, len(labels) * 0.7), 5))
        colors = [
            self.class_colors["Increase"] if self._upper_bound(label) > 0 else self.class_colors["Decrease"]
            for label in labels
        ]
        ax.bar(labels, [summary.bin_percentages[label] for label in labels], color=colors, alpha=0.9)
        ax.set_xlabel("log2 fold change")
        ax.set_ylabel("Regions (%)")
        ax.set_title(
            f"log2 fold-change bins: Increase {summary.class_percentages.get('Increase', 0.0):.0f}%, "
            f"Decrease {summary.class_percentages.get('Decrease', 0.0):.0f}%"
        )
        plt.xticks(rotation=45, ha="right")

        plt.tight_layout()
        return fig

    def plot_class_comparison(self, summaries: Dict[str, CategorySummary]) -> plt.Figure:
        """Effect class percentages side by side for several region tables"""
        rows = []
        for table_id, summary in summaries.items():
            for effect_class in EFFECT_CLASSES:
                rows.append(
                    {
                        "table": f"{table_id} (n={summary.total})",
                        "effect_class": effect_class,
                        "percentage": summary.class_percentages.get(effect_class, 0.0),
                    }
                )
        plot_df = pd.DataFrame(rows)

        fig, ax = plt.subplots(1, 1, figsize=(max(6, 2.5 * len(summaries)), 5))
        sns.barplot(
            data=plot_df,
            x="table",
            y="percentage",
            hue="effect_class",
            hue_order=EFFECT_CLASSES,
            palette=self.class_colors,
            ax=ax,
        )
        ax.set_xlabel("")
        ax.set_ylabel("Regions (%)")
        ax.set_title("Effect classes by region set")
        ax.legend(title="Effect class")

        plt.tight_layout()
        return fig

    def save_figure(self, fig: plt.Figure, name: str) -> Dict[str, Path]:
        """Save a figure in every configured format"""
        saved = {}
        for fmt in self.save_formats:
            path = self.output_dir / f"{name}.{fmt}"
            fig.savefig(path, dpi=self.dpi, bbox_inches="tight")
            saved[fmt] = path
        logger.info(f"Saved {name} ({', '.join(self.save_formats)})")
        return saved

    def create_figure5(
        self,
        associations: pd.DataFrame,
        summary: CategorySummary,
        threshold: float = 0.3,
        log2_summary: Optional[CategorySummary] = None,
        comparison: Optional[Dict[str, CategorySummary]] = None,
        class_map: Optional[Dict[str, str]] = None,
        charts_dir: Optional[Union[str, Path]] = None,
    ) -> Dict[str, Path]:
        """
        Render and save every Figure 5 chart

        Returns:
            Dictionary of output name -> path
        """
        charts_dir = Path(charts_dir) if charts_dir else self.output_dir
        outputs: Dict[str, Path] = {}

        plots: List[Tuple[str, plt.Figure]] = [
            ("panel_A", self.plot_panel_a(associations, threshold)),
            ("panel_A_stratified", self.plot_stratified(associations, threshold)),
            ("panel_B", self.plot_panel_b(summary, class_map=class_map)),
        ]
        if log2_summary is not None:
            plots.append(("panel_B_log2", self.plot_log2_bars(log2_summary)))
        if comparison:
            plots.append(("effect_classes_by_region_set", self.plot_class_comparison(comparison)))

        for name, fig in plots:
            for fmt, path in self.save_figure(fig, name).items():
                outputs[f"{name}_{fmt}"] = path
            if name in ("panel_A", "panel_B"):
                outputs[f"{name}_pkl"] = save_chart_object(fig, charts_dir / f"{name}.pkl")
            plt.close(fig)

        return outputs

    @staticmethod
    def _upper_bound(label: str) -> float:
        upper = label.strip("(]").split(",")[1]
        return float(upper.replace("Inf", "inf"))
