"""
Pytest configuration and fixtures for MethylFlow tests
"""
import os
import shutil
import tempfile

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from methylflow.config import Config

SAMPLES = ["control_1", "control_2", "control_3", "dox_1", "dox_2", "dox_3", "removal_1"]

# Genes 1-5 sit on chr1 (+ strand, TSS at k * 100000), GENE6 on chr2 (- strand, TSS 60000)
PROMOTER_GENES = ["GENE1", "GENE2", "GENE3", "GENE4", "GENE5", "GENE6"]


def write_umr_table(path):
    """UMR table: no header, a comment line, noData cells and one stray '$'"""
    rows = [
        ["chr1", 99500, 100500, 20, 0.05, 0.65, 0.60, "GENE1", 0, "promoter", "CGI", "genebody"],
        ["chr1", 199500, 200500, 18, 0.10, 0.60, 0.50, "GENE2", 0, "promoter", "CGI", "genebody"],
        ["chr1", 299000, 299800, 15, 0.05, 0.50, 0.45, "GENE3", -500, "promoter", "CGI", "genebody"],
        ["chr1", 399500, 400500, 12, 0.10, 0.30, 0.20, "GENE4", 0, "promoter", "nonCGI", "genebody"],
        ["chr1", 499500, 500500, 11, "noData", "noData", "noData", "GENE5", 0, "promoter", "CGI", "genebody"],
        ["chr2", 59000, 59500, 25, 0.02, 0.72, 0.70, "GENE6", 800, "promoter", "CGI", "genebody"],
        ["chr1", 250000, 251000, 9, 0.05, 0.55, 0.50, "NONE", 50000, "distal", "nonCGI", "intergenic"],
        ["chr3", 1000, 2000, 8, 0.05, 0.55, 0.50, "NONE", 0, "distal", "nonCGI", "intergenic"],
        ["chr1", 100600, 101000, "12$", 0.05, 0.65, 0.60, "GENE1", 300, "promoter", "CGI", "genebody"],
    ]
    with open(path, "w") as f:
        f.write("# Unmethylated regions, induced methylation levels\n")
        for row in rows:
            f.write("\t".join(str(value) for value in row) + "\n")
    return path


def write_dmr_table(path):
    with open(path, "w") as f:
        f.write("chr\tstart\tend\tnCpG\tmC_noDox\tmC_Dox\tpvalue\tclass\n")
        f.write("chr1\t99000\t100100\t30\t0.05\t0.70\t1e-8\thyper\n")
        f.write("chr1\t199800\t200300\t22\t0.10\t0.55\t1e-6\thyper\n")
        f.write("chr2\t59200\t59600\t19\t0.02\t0.80\t1e-9\thyper\n")
        f.write("chr5\t10000\t10500\t10\t0.60\t0.10\t1e-4\thypo\n")
    return path


def write_dmr_retained_table(path):
    with open(path, "w") as f:
        f.write("chr\tstart\tend\tnCpG\tmC_noDox\tmC_Dox\tmC_removal\tclass\n")
        f.write("chr1\t99000\t100100\t30\t0.05\t0.70\t0.65\tretained\n")
        f.write("chr2\t59200\t59600\t19\t0.02\t0.80\tnoData\tretained\n")
    return path


def write_zf_peaks_table(path):
    with open(path, "w") as f:
        f.write("chr,start,end,name,score,fold_enrichment,log10_pvalue,log10_qvalue\n")
        f.write("chr1,99900,100100,peak_1,250,12.5,25.1,22.0\n")
        f.write("chr1,199900,200100,peak_2,180,9.1,18.0,15.2\n")
        f.write("chr7,5000,5200,peak_3,$90,4.0,9.3,7.7\n")
        f.write("chr9,7000,7300,peak_4,60,3.2,6.1,4.4\n")
    return path


def make_counts(seed=0, n_fillers=30):
    """Deterministic Poisson counts; GENE1 drops in treated samples, GENE6 rises"""
    rng = np.random.RandomState(seed)
    size_factors = np.array([1.0, 1.2, 0.8, 1.1, 0.9, 1.0, 1.0])
    treated = np.array([0, 0, 0, 1, 1, 1, 0])

    rows = {}
    for i, gene in enumerate(PROMOTER_GENES):
        mean = 800.0 + 150 * i
        fold = {"GENE1": 0.2, "GENE6": 4.0}.get(gene, 1.0)
        mu = mean * size_factors * np.where(treated == 1, fold, 1.0)
        rows[gene] = rng.poisson(mu)
    for i in range(n_fillers):
        mean = 100.0 + 20 * i
        rows[f"FILL{i:02d}"] = rng.poisson(mean * size_factors)

    counts = pd.DataFrame.from_dict(rows, orient="index", columns=SAMPLES)
    counts.index.name = "gene"
    return counts


def write_counts_table(path, counts=None):
    """Count matrix TSV with a duplicated label and an all-zero gene added"""
    counts = make_counts() if counts is None else counts
    extra = pd.DataFrame(
        [[5] * len(SAMPLES), [7] * len(SAMPLES), [0] * len(SAMPLES)],
        index=["DUP", "DUP", "ZERO"],
        columns=SAMPLES,
    )
    table = pd.concat([counts, extra])
    table.index.name = "gene"
    table.to_csv(path, sep="\t")
    return path


def write_refgene_table(path):
    """A refGene.txt excerpt (16 columns, no header)"""
    rows = []

    def transcript(name, chrom, strand, tx_start, tx_end, symbol):
        rows.append(
            [0, name, chrom, strand, tx_start, tx_end, tx_start, tx_end, 1,
             f"{tx_start},", f"{tx_end},", 0, symbol, "cmpl", "cmpl", "0,"]
        )

    for k in range(1, 6):
        transcript(f"NM_00000{k}", "chr1", "+", k * 100000, k * 100000 + 5000, f"GENE{k}")
    transcript("NM_000011", "chr1", "+", 100000, 108000, "GENE1")
    transcript("NM_000006", "chr2", "-", 50000, 60000, "GENE6")
    transcript("NR_000007", "chr1", "+", 700000, 701000, "NCRNA7")
    transcript("NM_000008", "chr1_gl000191_random", "+", 1000, 2000, "GENE8")

    with open(path, "w") as f:
        for row in rows:
            f.write("\t".join(str(value) for value in row) + "\n")
    return path


def write_all_sources(raw_dir):
    """Populate a raw/ cache directory with every source file of the default config"""
    os.makedirs(raw_dir, exist_ok=True)
    write_umr_table(os.path.join(raw_dir, "umr_table.tsv"))
    write_dmr_table(os.path.join(raw_dir, "dmr_table.tsv"))
    write_dmr_retained_table(os.path.join(raw_dir, "dmr_retained_table.tsv"))
    write_zf_peaks_table(os.path.join(raw_dir, "zf_peaks_table.csv"))
    write_counts_table(os.path.join(raw_dir, "rnaseq_counts.tsv"))
    write_refgene_table(os.path.join(raw_dir, "refGene_hg19.txt"))
    return raw_dir


@pytest.fixture(autouse=True)
def _no_data_dir_override(monkeypatch):
    monkeypatch.delenv("METHYLFLOW_DATA_DIR", raising=False)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests"""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir)


@pytest.fixture
def test_config(temp_dir):
    """Configuration rooted in the temporary directory"""
    config = Config(
        data_dir=os.path.join(temp_dir, "data"),
        output_dir=os.path.join(temp_dir, "output"),
    )
    config.differential["show_progress"] = False
    config.tables["show_progress"] = False
    config.visualization["save_formats"] = ["png"]
    config.visualization["dpi"] = 50
    return config


@pytest.fixture
def raw_dir(test_config):
    """Raw cache directory filled with every source table"""
    return write_all_sources(os.path.join(test_config.data_dir, "raw"))


@pytest.fixture
def promoters():
    """Promoter windows on chr1 in the layout produced by build_promoters"""
    return pd.DataFrame(
        {
            "chrom": ["1", "1", "1"],
            "start": [10000, 30000, 50000],
            "end": [12200, 32200, 52200],
            "symbol": ["G1", "G2", "G3"],
        }
    )


@pytest.fixture
def expression():
    """Differential expression results indexed by gene"""
    return pd.DataFrame(
        {
            "baseMean": [500.0, 120.0, 60.0, 10.0],
            "log2FoldChange": [-1.5, 0.2, 1.0, -0.4],
            "padj": [0.001, 0.6, 0.03, 0.9],
            "significant": [True, False, True, False],
        },
        index=pd.Index(["G1", "G2", "G3", "G4"], name="gene"),
    )
