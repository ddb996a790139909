import git
import json
import logging
import os
from pathlib import Path
import secrets
from typing import Union
import yaml

logger = logging.getLogger(__name__)


def get_repo_root():
    """
    Get the root directory of the git repository. Fallback to current working directory if not a git repo

    Returns:
        str: The absolute path to the root directory of the git repository.
    """
    try:
        repo = git.Repo(search_parent_directories=True)
        return repo.git.rev_parse("--show-toplevel")
    except git.exc.InvalidGitRepositoryError:
        return os.getcwd()


def load_config(config_file: Union[Path, str]) -> dict:
    assert os.path.isfile(config_file), f"Config file not found: {config_file}"
    with open(config_file) as f:
        cfg = yaml.safe_load(f)
    return cfg or {}


def setup_directories(cfg):
    """
    Set up base directories for results and traces as specified in the
    configuration. If not given, use git repo or calling script directory and use default naming.

    Args:
        cfg (dict): Configuration dictionary containing directory settings.
    """
    root_dir = get_repo_root()
    output_dir = cfg.get("output_dir", "output")
    # Ensure directories are absolute paths
    if not os.path.isabs(output_dir):
        output_dir = os.path.join(root_dir, output_dir)

    # Concatenate with run name
    run_name = cfg.get("run_name") or secrets.token_hex(4)
    output_dir = os.path.join(output_dir, run_name)
    os.makedirs(output_dir, exist_ok=True)
    cfg["output_dir"] = output_dir

    results_dir = os.path.join(output_dir, "results")
    os.makedirs(results_dir, exist_ok=True)
    cfg["results_dir"] = results_dir
    logger.info(f"Results are written to: {results_dir}")

    trace_dir = os.path.join(output_dir, "traces")
    os.makedirs(trace_dir, exist_ok=True)
    cfg["trace_dir"] = trace_dir
    logger.info(f"Calculation traces are written to: {trace_dir}")

    return cfg


def read_patient_records(data_folder: Union[Path, str]) -> dict:
    assert os.path.isdir(data_folder)
    records = {}
    for p in sorted(Path(data_folder).iterdir()):
        if p.name.startswith(".") or not p.name.lower().endswith(".json"):
            continue
        with open(p, "r", encoding="utf-8") as f:
            try:
                record = json.load(f)
            except json.JSONDecodeError as e:
                logger.error(f"Could not decode patient record {p.name}: {e}")
                continue
        if not isinstance(record, dict):
            logger.error(f"Patient record {p.name} is not a JSON object, skipped")
            continue
        record_id = p.stem.split("_")[0]
        records[record_id] = record
    return records


def save_trace(record_id: str, trace_dir: Union[Path, str], assessment: dict):
    trace_file = Path(trace_dir) / f"{record_id}.json"
    with open(trace_file, "w", encoding="utf-8") as f:
        json.dump(assessment, f, indent=2, ensure_ascii=False)
    return trace_file
