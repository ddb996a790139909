# src/pipeline/batch.py

from datetime import datetime
import logging
from numpy import nan
import os
import pandas as pd
from pathlib import Path
from typing import List

from src.core import fastmcp_app
from src.scoring.base import RiskScoreFactory
from src.scoring.sts import STSRiskScore
from src.sysops.filesystem import (
    load_config,
    read_patient_records,
    save_trace,
    setup_directories,
)


logger = logging.getLogger(__name__)


class Pipeline:

    def __init__(self, cfg: dict) -> None:
        self._cfg = cfg
        self._cfg.setdefault("recalculate", False)
        self._cfg.setdefault("write_traces", True)

        # Setup output directories
        cfg = setup_directories(cfg)
        self.results_dir = Path(cfg["results_dir"])
        self.trace_dir = Path(cfg["trace_dir"])
        self.results_file = self.results_dir / Path("sts_calc.csv")

        self.score = RiskScoreFactory.create("sts")

    def _collect_results(self, results_file: Path, items: List):
        # return dataframe index on a column named "index"
        # in case datafile exists possibly missing columns will be added,
        # otherwise an empty frame is constructed
        items = [item for item in items if item != "index"]
        if results_file.exists():
            results = pd.read_csv(results_file, index_col="index", dtype={"index": str})
        else:
            results = pd.DataFrame(columns=items)
            results.index.name = "index"

        # augment with any missing columns from 'items' and fill with NaN
        for col in items:
            if col not in results.columns:
                results[col] = nan

        results = results.reindex(columns=items).astype("object")
        return results

    def call_calc(self, record: dict, record_id: str) -> pd.Series:
        assessment = self.score.assess(record)
        score_items = assessment.to_series()

        # load existing results file or initialize as empty
        items = score_items.index
        scores_df = self._collect_results(self.results_file, items)

        # ensure record id is unique
        if record_id in scores_df.index and not pd.isna(
            scores_df.at[record_id, "mortality"]
        ):
            if not self._cfg.get("recalculate", False):
                mortality = scores_df.at[record_id, "mortality"]
                logger.debug(
                    f"Risk already computed for {record_id}: {mortality}%, "
                    f"will skip recalculation step as set in config."
                )
                return scores_df.loc[record_id]
            ts = datetime.now().strftime("%Y%m%d%H%M%S")
            record_id_new = f"{record_id}_{ts}"
            logger.debug(
                f"Risk already computed for {record_id}, will recalculate and "
                f"update case under ID {record_id_new}"
            )
            record_id = record_id_new

        # write flattened assessment back
        assert (score_items.index == scores_df.columns).all()
        scores_df.loc[record_id] = score_items
        scores_df.reset_index().to_csv(self.results_file, index=False)

        if self._cfg.get("write_traces", True):
            save_trace(record_id, self.trace_dir, assessment.to_dict())

        return scores_df.loc[record_id]


def _sts_pipeline_inner(data_folder: str, config_file: str) -> dict:
    # read configuration file
    cfg = load_config(config_file)
    logger.debug(f"Read config: {cfg}")

    # read patient records stored as json files in data folder
    records = read_patient_records(data_folder)

    pipeline = Pipeline(cfg)
    results = []
    for record_id in sorted(records.keys()):
        logger.info(f"Processing {record_id}")
        result = pipeline.call_calc(records[record_id], record_id)
        results.append(result)
        logger.info(
            f"STS mortality of {record_id}:\t{result['mortality']}% "
            f"({result['risk_category']}, confidence {result['confidence']})"
        )

    logger.info(f"Calculated risks written to\t{pipeline.results_file}")
    df = pd.DataFrame(results).astype(object)
    df.index.name = "index"
    df = df.reset_index()
    df = df.where(pd.notna(df), None)
    return {"results": df.to_dict(orient="records")}


@fastmcp_app.tool()
def sts_risk(patient: dict) -> dict:
    """
    Estimate STS perioperative risks for one structured patient record.
    Returns per-outcome percentages with their full calculation traces,
    the mortality risk category and the confidence of the estimate.

    accepted payload:
    {
        'patient': dict  # e.g. {'age': 70, 'gender': 'Male',
                         #       'procedureType': 'Isolated CABG', ...}
    }
    """
    return STSRiskScore().assess(patient).to_dict()


@fastmcp_app.tool()
def sts_pipeline(data_folder: str, config_file: str) -> dict:
    """
    Batch entry point. For each JSON patient record in data_folder the
    STS risks are calculated, checkpointed in <output_dir>/<run_name>/results/
    sts_calc.csv and the calculation traces written to .../traces/<id>.json.

    accepted payload:
    {
        'data_folder': str, # path to folder with patient records
        'config_file': str  # path to config.yaml
    }
    """
    assert os.path.isdir(data_folder), f"Data folder not found: {data_folder}"
    return _sts_pipeline_inner(data_folder, config_file)
