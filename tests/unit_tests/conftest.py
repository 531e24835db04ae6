import os

import matplotlib
import numpy as np
import pandas as pd
import pytest

matplotlib.use("Agg")
from matplotlib import pyplot as plt

plt.ioff()

RAW_FILES = [
    "20240101_QE_HeLa_rep01",
    "20240101_QE_HeLa_rep02",
    "20240101_QE_HeLa_rep03",
]


def write_table(df: pd.DataFrame, path) -> None:
    """Write a table the way the search engine does (tab-delimited, no index)."""
    df.to_csv(path, sep="\t", index=False)


def mock_parameters_df() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "Parameter": ["Version", "Fixed modifications", "Match between runs", "Fasta file"],
            "Value": ["2.4.0.0", "Carbamidomethyl (C)", "True", r"C:\db\human.fasta;C:\db\contaminants.fasta"],
        }
    )


def mock_summary_df(raw_files=RAW_FILES, id_rates=(40.0, 30.0, 10.0)) -> pd.DataFrame:
    """One row per raw file plus the 'Total' row.

    With the default thresholds (bad < 20 <= ok < 35 <= great) the id rates map to
    great / ok / bad.
    """
    n = len(raw_files)
    return pd.DataFrame(
        {
            "Raw file": list(raw_files) + ["Total"],
            "Experiment": [f"exp{i + 1}" for i in range(n)] + [""],
            "MS": [10000] * n + [10000 * n],
            "MS/MS": [40000] * n + [40000 * n],
            "MS/MS Identified [%]": list(id_rates[:n]) + [float(np.mean(id_rates[:n]))],
        }
    )


def mock_protein_groups_df(n_proteins: int = 60, raw_files=RAW_FILES, seed: int = 42) -> pd.DataFrame:
    """Protein groups with one raw and one LFQ intensity column per experiment."""
    rng = np.random.default_rng(seed)
    ids = [f"P{10000 + i}" for i in range(n_proteins)]
    contaminant = ["+" if i % 20 == 0 else "" for i in range(n_proteins)]
    reverse = ["+" if i == n_proteins - 1 else "" for i in range(n_proteins)]
    data = {
        "Protein IDs": ids,
        "Majority protein IDs": ids,
        "Fasta headers": [
            f">sp|{p}|MYCOPLASMA protein {i}" if i == 5 else f">sp|{p}|human protein {i}"
            for i, p in enumerate(ids)
        ],
        "Protein names": [f"Protein {i}" for i in range(n_proteins)],
        "Potential contaminant": contaminant,
        "Reverse": reverse,
    }
    total = np.zeros(n_proteins)
    for i, _ in enumerate(raw_files):
        values = np.round(2 ** rng.normal(26, 1.5, n_proteins))
        values[rng.random(n_proteins) < 0.1] = 0
        data[f"Intensity exp{i + 1}"] = values
        data[f"LFQ intensity exp{i + 1}"] = np.round(values * 0.9)
        total += values
    data["Intensity"] = total
    return pd.DataFrame(data)


def mock_evidence_df(n_per_file: int = 80, raw_files=RAW_FILES, seed: int = 42,
                     with_transfer: bool = True) -> pd.DataFrame:
    """Evidence rows; every 10th row is transferred by match-between-runs."""
    rng = np.random.default_rng(seed)
    peptides = [f"PEPTIDE{chr(65 + i % 26)}{i}K" for i in range(n_per_file)]
    frames = []
    n = n_per_file
    for raw in raw_files:
        rt = np.linspace(5, 95, n) + rng.normal(0, 0.2, n)
        frames.append(pd.DataFrame({
            "Sequence": peptides,
            "Modified sequence": [f"_{p}_" for p in peptides],
            "Modifications": ["Oxidation (M)" if i % 7 == 0 else "Unmodified" for i in range(n)],
            "Proteins": [f"P{10000 + i % 60}" for i in range(n)],
            "Protein names": [f"Protein {i % 60}" for i in range(n)],
            "Protein group IDs": [str(i % 60) for i in range(n)],
            "Raw file": raw,
            "Type": ["MULTI-MATCH" if (with_transfer and i % 10 == 0) else "MULTI-MSMS" for i in range(n)],
            "Charge": [2 if i % 4 else 3 for i in range(n)],
            "m/z": rng.uniform(400, 1200, n),
            "Retention time": rt,
            "Retention length": rng.uniform(0.2, 0.4, n),
            "Retention time calibration": rng.normal(0, 0.1, n),
            "Mass error [ppm]": rng.normal(0, 1, n),
            "Uncalibrated Mass Error [ppm]": rng.normal(2, 2, n),
            "Intensity": np.round(2 ** rng.normal(24, 1, n)),
            "MS/MS count": [1 if i % 5 else 2 for i in range(n)],
            "Missed cleavages": [0 if i % 6 else 1 for i in range(n)],
            "Potential contaminant": ["+" if i % 30 == 0 else "" for i in range(n)],
            "Reverse": "",
        }))
    df = pd.concat(frames, ignore_index=True)
    df.insert(0, "id", np.arange(len(df)))
    return df


def mock_msms_df(n_per_file: int = 40, raw_files=RAW_FILES, seed: int = 42) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    frames = []
    for raw in raw_files:
        frames.append(pd.DataFrame({
            "Raw file": raw,
            "Sequence": [f"PEPTIDE{i}K" for i in range(n_per_file)],
            "Missed cleavages": [0 if i % 4 else 1 for i in range(n_per_file)],
            "Mass deviations [Da]": [
                ";".join(f"{v:.4f}" for v in rng.normal(0, 0.005, 5)) for _ in range(n_per_file)
            ],
            "Mass analyzer": "FTMS",
            "Reverse": "",
        }))
    return pd.concat(frames, ignore_index=True)


def mock_msms_scans_df(n_cycles: int = 30, top_n: int = 5, raw_files=RAW_FILES, seed: int = 42) -> pd.DataFrame:
    """Complete top-N cycles, except every 5th cycle which stops early."""
    rng = np.random.default_rng(seed)
    frames = []
    for raw in raw_files:
        events, rts = [], []
        for c in range(n_cycles):
            reached = top_n if c % 5 else top_n - 2
            events.extend(range(1, reached + 1))
            rts.extend([1 + c * 2.0 + e * 0.01 for e in range(reached)])
        n = len(events)
        frames.append(pd.DataFrame({
            "Raw file": raw,
            "Retention time": rts,
            "Ion injection time": rng.uniform(1, 20, n),
            "Identified": np.where(rng.random(n) < 0.4, "+", "-"),
            "Scan event number": events,
            "Total ion current": np.round(2 ** rng.normal(22, 1, n)),
            "DP Modification": ["Deamidation" if i % 9 == 0 else "" for i in range(n)],
        }))
    return pd.concat(frames, ignore_index=True)


def make_txt_folder(root, tables=("parameters", "summary", "protein_groups")) -> str:
    """Write the requested mock tables into `root`/txt and return the folder path."""
    folder = os.path.join(str(root), "txt")
    os.makedirs(folder, exist_ok=True)
    builders = {
        "parameters": (mock_parameters_df, "parameters.txt"),
        "summary": (mock_summary_df, "summary.txt"),
        "protein_groups": (mock_protein_groups_df, "proteinGroups.txt"),
        "evidence": (mock_evidence_df, "evidence.txt"),
        "msms": (mock_msms_df, "msms.txt"),
        "msms_scans": (mock_msms_scans_df, "msmsScans.txt"),
    }
    for kind in tables:
        build, name = builders[kind]
        write_table(build(), os.path.join(folder, name))
    return folder


@pytest.fixture
def txt_folder_minimal(tmp_path):
    return make_txt_folder(tmp_path)


@pytest.fixture
def txt_folder_full(tmp_path):
    return make_txt_folder(
        tmp_path, ("parameters", "summary", "protein_groups", "evidence", "msms", "msms_scans")
    )


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")
